"""API routes for decision runs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import settings
from app.core.errors import (
    CopilotError,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    UpstreamAnalysisError,
    ValidationError,
)
from app.dependencies import get_run_service
from app.models.domain import DecisionRunResult
from app.schemas.runs import DecisionRunsResponse, IntakeRunRequest, RunRequest, RunSummary
from app.services.runs import DecisionRunService

router = APIRouter(prefix=f"{settings.api_v1_prefix}/decision", tags=["decisions"])


def _http_error(exc: CopilotError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (ValidationError, StateConflictError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, UpstreamAnalysisError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "Decision analysis failed. Please try again.", "retryable": exc.retryable},
        )
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Run could not be saved")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post("/run", response_model=DecisionRunResult)
async def submit_run(
    payload: RunRequest,
    run_service: DecisionRunService = Depends(get_run_service),
) -> DecisionRunResult:
    request = payload.root
    try:
        if isinstance(request, IntakeRunRequest):
            return await run_service.submit_intake(request.intake)
        return await run_service.submit_clarification(request.to_submission())
    except CopilotError as exc:
        raise _http_error(exc) from exc


@router.get("/run/{run_id}", response_model=DecisionRunResult)
def get_run(
    run_id: str,
    run_service: DecisionRunService = Depends(get_run_service),
) -> DecisionRunResult:
    try:
        return run_service.get_run(run_id)
    except CopilotError as exc:
        raise _http_error(exc) from exc


@router.get("/{decision_id}/runs", response_model=DecisionRunsResponse)
def list_decision_runs(
    decision_id: str,
    run_service: DecisionRunService = Depends(get_run_service),
) -> DecisionRunsResponse:
    try:
        runs = run_service.list_runs(decision_id)
    except CopilotError as exc:
        raise _http_error(exc) from exc
    return DecisionRunsResponse(
        decision_id=decision_id,
        runs=[
            RunSummary(
                run_id=run.run_id,
                status=run.status,
                posture=run.intake.posture,
                clarification_rounds=len(run.clarifications),
                has_brief=run.decision_brief is not None,
                created_at=run.created_at,
                updated_at=run.updated_at,
            )
            for run in runs
        ],
    )
