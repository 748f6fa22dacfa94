"""API schemas for decision run submission and retrieval."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel

from app.models.domain import ClarificationAnswer, RunStatus


class IntakePayload(BaseModel):
    """Intake fields as sent by the form; checked by the run service, not here."""

    decision_id: Optional[str] = Field(
        None, description="Reuse an existing decision identifier; a new one is generated when absent."
    )
    situation: Optional[str] = None
    constraints: Optional[str] = None
    posture: Optional[str] = Field(
        None, description="One of explore, pressure_test, surface_risks, generate_alternatives."
    )
    leaning_direction: Optional[str] = Field(None, description="Required when posture is pressure_test.")
    knowns_assumptions: Optional[str] = None
    unknowns: Optional[str] = None


class ClarificationSubmission(BaseModel):
    """One round of answers addressed to a run."""

    decision_id: str = ""
    run_id: str = ""
    clarification_round: Optional[int] = Field(
        None, description="Defaults to the next round; when supplied it must match."
    )
    answers: list[ClarificationAnswer] = Field(default_factory=list)


class ClarificationBody(BaseModel):
    clarification_round: Optional[int] = None
    answers: list[ClarificationAnswer] = Field(default_factory=list)


class IntakeRunRequest(BaseModel):
    """Request body for POST /v1/decision/run with ``type=intake``."""

    type: Literal["intake"]
    intake: IntakePayload


class ClarificationRunRequest(BaseModel):
    """Request body for POST /v1/decision/run with ``type=clarification``."""

    type: Literal["clarification"]
    decision_id: str = ""
    run_id: str = ""
    clarification: ClarificationBody = Field(default_factory=ClarificationBody)

    def to_submission(self) -> ClarificationSubmission:
        return ClarificationSubmission(
            decision_id=self.decision_id,
            run_id=self.run_id,
            clarification_round=self.clarification.clarification_round,
            answers=self.clarification.answers,
        )


class RunRequest(RootModel[Annotated[Union[IntakeRunRequest, ClarificationRunRequest], Field(discriminator="type")]]):
    """Request body for POST /v1/decision/run, tagged by ``type``."""


class RunSummary(BaseModel):
    run_id: str
    status: RunStatus
    posture: str
    clarification_rounds: int
    has_brief: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DecisionRunsResponse(BaseModel):
    """Response body for GET /v1/decision/{decision_id}/runs."""

    decision_id: str
    runs: list[RunSummary] = Field(default_factory=list)


class StoreHealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    backend: Literal["redis", "memory"]
