"""Domain data models for the decision copilot service."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

UNKNOWN_ANSWER = "unknown"


class Posture(str, Enum):
    """The user's stated intent for the analysis."""

    EXPLORE = "explore"
    PRESSURE_TEST = "pressure_test"
    SURFACE_RISKS = "surface_risks"
    GENERATE_ALTERNATIVES = "generate_alternatives"


class LensName(str, Enum):
    """Independent analytical perspectives applied to a decision."""

    RISK = "risk"
    REVERSIBILITY = "reversibility"
    PEOPLE = "people"


class AnswerType(str, Enum):
    """Shape of the answer expected for a follow-up question."""

    ENUM = "enum"
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    PERCENTAGE = "percentage"
    SHORT_TEXT = "short_text"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class RunStatus(str, Enum):
    """Lifecycle states for a decision run.

    ``PENDING_BRIEF`` belongs to the lenses-first, brief-deferred flow and is
    accepted when loading runs, but no transition in this service produces it.
    """

    AWAITING_INTAKE = "awaiting_intake"
    PROCESSING_INITIAL = "processing_initial"
    AWAITING_CLARIFICATION = "awaiting_clarification"
    PROCESSING_CLARIFICATION = "processing_clarification"
    PENDING_BRIEF = "pending_brief"
    COMPLETE = "complete"


class _IntakeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision_id: str = Field(..., description="Stable identifier for the decision across re-runs.")
    situation: str
    constraints: str
    knowns_assumptions: Optional[str] = None
    unknowns: Optional[str] = None


class StandardIntake(_IntakeBase):
    """Intake for every posture except pressure testing."""

    posture: Literal["explore", "surface_risks", "generate_alternatives"]
    leaning_direction: None = None


class PressureTestIntake(_IntakeBase):
    """Intake for the pressure_test posture; the leaning direction is mandatory."""

    posture: Literal["pressure_test"]
    leaning_direction: str = Field(..., min_length=1)


DecisionIntake = Annotated[Union[StandardIntake, PressureTestIntake], Field(discriminator="posture")]


class LensQuestion(BaseModel):
    """Follow-up question surfaced by a lens.

    ``question_id`` is only unique within its lens; ``key`` is the global identity.
    """

    question_id: str
    lens: LensName
    question_text: str
    answer_type: AnswerType
    options: Optional[list[str]] = Field(None, description="Choices for enum questions, absent otherwise.")
    required: bool = False

    @model_validator(mode="after")
    def _check_options(self) -> "LensQuestion":
        if self.answer_type == AnswerType.ENUM:
            if not self.options:
                raise ValueError(f"enum question '{self.question_id}' must list options")
        else:
            self.options = None
        return self

    @property
    def key(self) -> tuple[LensName, str]:
        return self.lens, self.question_id


class ClarificationAnswer(BaseModel):
    """User's answer to one follow-up question."""

    question_id: str
    lens: LensName
    answer: Union[bool, int, float, str]
    answer_type: AnswerType

    @model_validator(mode="after")
    def _check_answer_shape(self) -> "ClarificationAnswer":
        value = self.answer
        if self.answer_type == AnswerType.BOOLEAN:
            if not isinstance(value, bool) and value != UNKNOWN_ANSWER:
                raise ValueError("boolean answers must be true, false, or 'unknown'")
        elif self.answer_type in (AnswerType.NUMERIC, AnswerType.PERCENTAGE):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{self.answer_type.value} answers must be numbers")
        elif not isinstance(value, str) or not value.strip():
            raise ValueError(f"{self.answer_type.value} answers must be non-empty text")
        return self

    @property
    def key(self) -> tuple[LensName, str]:
        return self.lens, self.question_id


class Clarification(BaseModel):
    """One round of answers submitted against a run."""

    decision_id: str
    run_id: str
    clarification_round: int = Field(..., ge=1)
    answers: list[ClarificationAnswer] = Field(default_factory=list)


class BlindSpot(BaseModel):
    area: str
    description: str


class Tradeoff(BaseModel):
    option: str
    upside: str
    downside: str


class StakeholderImpact(BaseModel):
    stakeholder: str
    impact: str
    sentiment: Sentiment


class _LensOutputBase(BaseModel):
    confidence: Confidence
    assumptions_detected: list[str] = Field(default_factory=list)
    blind_spots: list[BlindSpot] = Field(default_factory=list)
    tradeoffs: list[Tradeoff] = Field(default_factory=list)
    remaining_uncertainty: list[str] = Field(default_factory=list)
    questions_to_answer_next: list[LensQuestion] = Field(
        default_factory=list,
        description="Follow-up questions; empty in a final output.",
    )


class RiskLensOutput(_LensOutputBase):
    lens: Literal["risk"] = "risk"
    top_risks: list[str]


class ReversibilityLensOutput(_LensOutputBase):
    lens: Literal["reversibility"] = "reversibility"
    irreversible_steps: list[str]
    safe_to_try_first: list[str]


class PeopleLensOutput(_LensOutputBase):
    lens: Literal["people"] = "people"
    stakeholder_impacts: list[StakeholderImpact]
    execution_risks: list[str]


LensOutput = Annotated[
    Union[RiskLensOutput, ReversibilityLensOutput, PeopleLensOutput],
    Field(discriminator="lens"),
]


class DecisionBrief(BaseModel):
    """Synthesized recommendation produced once lens analysis is final."""

    title: str
    generated_at: datetime
    summary: str
    recommendation: str
    key_considerations: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class DecisionRunResult(BaseModel):
    """Full state of one run; the unit of persistence."""

    decision_id: str
    run_id: str
    status: RunStatus
    intake: DecisionIntake
    clarification_questions: list[LensQuestion] = Field(default_factory=list)
    clarification_needed: bool = False
    clarifications: list[Clarification] = Field(default_factory=list)
    lens_outputs: list[LensOutput] = Field(
        default_factory=list,
        description="Latest outputs, replaced wholesale on every lens run.",
    )
    decision_brief: Optional[DecisionBrief] = None
    version: int = Field(0, description="Bumped on every successful replace; used for optimistic concurrency.")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_clarification_flag(self) -> "DecisionRunResult":
        if self.clarification_needed != bool(self.clarification_questions):
            raise ValueError("clarification_needed must reflect whether clarification_questions is non-empty")
        return self

    def set_pending_questions(self, questions: list[LensQuestion]) -> None:
        self.clarification_questions = list(questions)
        self.clarification_needed = bool(questions)

    def lens_output(self, lens: LensName) -> Optional[LensOutput]:
        for output in self.lens_outputs:
            if output.lens == lens.value:
                return output
        return None
