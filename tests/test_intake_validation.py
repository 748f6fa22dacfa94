from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ValidationError
from app.models.domain import PressureTestIntake, StandardIntake
from app.schemas.runs import IntakePayload
from app.services.runs import validate_intake


def _payload(**overrides) -> IntakePayload:
    fields = {"situation": "Switch DB", "constraints": "3mo, 2 devs", "posture": "explore"}
    fields.update(overrides)
    return IntakePayload(**fields)


def test_explore_intake_builds_standard_variant():
    intake = validate_intake(_payload(knowns_assumptions="  ", unknowns=" Data volume "), "dec_1")

    assert isinstance(intake, StandardIntake)
    assert intake.decision_id == "dec_1"
    assert intake.posture == "explore"
    assert intake.leaning_direction is None
    assert intake.knowns_assumptions is None
    assert intake.unknowns == "Data volume"


def test_pressure_test_requires_leaning_direction():
    with pytest.raises(ValidationError, match="leaning_direction is required when posture is pressure_test"):
        validate_intake(_payload(posture="pressure_test"), "dec_1")

    with pytest.raises(ValidationError, match="leaning_direction is required"):
        validate_intake(_payload(posture="pressure_test", leaning_direction="   "), "dec_1")


def test_pressure_test_with_leaning_direction():
    intake = validate_intake(_payload(posture="pressure_test", leaning_direction="Migrate to Postgres"), "dec_1")

    assert isinstance(intake, PressureTestIntake)
    assert intake.leaning_direction == "Migrate to Postgres"


def test_leaning_direction_rejected_for_other_postures():
    with pytest.raises(ValidationError, match="only accepted when posture is pressure_test"):
        validate_intake(_payload(posture="surface_risks", leaning_direction="Migrate to Postgres"), "dec_1")


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"situation": None}, "situation is required"),
        ({"situation": "   "}, "situation is required"),
        ({"constraints": ""}, "constraints is required"),
        ({"posture": None}, "posture must be one of"),
        ({"posture": "yolo"}, "posture must be one of: explore, pressure_test, surface_risks, generate_alternatives"),
    ],
)
def test_missing_or_invalid_fields(overrides, message):
    with pytest.raises(ValidationError, match=message):
        validate_intake(_payload(**overrides), "dec_1")


def test_intake_is_immutable():
    intake = validate_intake(_payload(), "dec_1")

    with pytest.raises(PydanticValidationError):
        intake.situation = "Something else"
