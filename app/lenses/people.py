"""People lens: stakeholder impacts and execution risks."""

from __future__ import annotations

from app.lenses.base import LensEvaluator
from app.models.domain import LensName, PeopleLensOutput


class PeopleLens(LensEvaluator):
    lens = LensName.PEOPLE
    output_model = PeopleLensOutput
    focus = "people and execution"
    role = (
        "You are an advisor helping someone think through the people and execution side of an important "
        "decision. Identify stakeholder impacts (who is affected and whether positively, negatively or "
        "neutrally) and execution risks such as adoption, resistance, capability gaps, coordination and "
        "dependencies."
    )
    task = "Analyze stakeholder impacts and execution risks for this decision."
    posture_guidance = {
        "explore": (
            "The user is exploring this decision openly. Surface who is affected and what execution risks "
            "matter across options."
        ),
        "pressure_test": (
            'The user is leaning toward: "{leaning}". Stress-test this by identifying who might resist, '
            "who is left out, and what could derail execution."
        ),
        "surface_risks": (
            "The user wants to understand risks. Be thorough on stakeholder impacts and execution risks; "
            "don't soften the people side."
        ),
        "generate_alternatives": (
            "The user wants to explore alternatives. For each stakeholder or execution risk, consider whether "
            "a different approach could reduce impact or risk."
        ),
    }
