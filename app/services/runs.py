"""Decision run state machine.

Drives a run through ``awaiting_intake -> processing_initial ->
{awaiting_clarification | complete}`` and ``awaiting_clarification ->
processing_clarification -> complete``. A transition is all-or-nothing: the
run is written to the store only after the whole sequence succeeded, so a
failed intake leaves no run behind and a failed clarification leaves the
stored run untouched.

The store is synchronous, so the async transitions reach it through a worker
thread and a slow Redis never stalls other requests on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from app.core.errors import NotFoundError, ValidationError
from app.core.identifiers import new_decision_id, new_run_id
from app.models.domain import (
    DecisionIntake,
    DecisionRunResult,
    Posture,
    PressureTestIntake,
    RunStatus,
    StandardIntake,
)
from app.repositories.redis_store import RedisRunStore
from app.schemas.runs import ClarificationSubmission, IntakePayload
from app.services.brief import BriefSynthesizer
from app.services.clarification import ClarificationAggregator
from app.services.orchestrator import LensOrchestrator
from app.telemetry import EventSink, NullEventSink, record_transition

_logger = logging.getLogger(__name__)

VALID_POSTURES = tuple(posture.value for posture in Posture)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def validate_intake(payload: IntakePayload, decision_id: str) -> DecisionIntake:
    """Check intake fields and build the posture-specific intake variant."""

    situation = _clean(payload.situation)
    if not situation:
        raise ValidationError("situation is required")
    constraints = _clean(payload.constraints)
    if not constraints:
        raise ValidationError("constraints is required")
    posture = _clean(payload.posture)
    if posture not in VALID_POSTURES:
        raise ValidationError(f"posture must be one of: {', '.join(VALID_POSTURES)}")

    leaning_direction = _clean(payload.leaning_direction)
    common = {
        "decision_id": decision_id,
        "situation": situation,
        "constraints": constraints,
        "knowns_assumptions": _clean(payload.knowns_assumptions),
        "unknowns": _clean(payload.unknowns),
    }
    if posture == Posture.PRESSURE_TEST.value:
        if not leaning_direction:
            raise ValidationError("leaning_direction is required when posture is pressure_test")
        return PressureTestIntake(posture=posture, leaning_direction=leaning_direction, **common)
    if leaning_direction:
        raise ValidationError("leaning_direction is only accepted when posture is pressure_test")
    return StandardIntake(posture=posture, **common)


class DecisionRunService:
    """Coordinates lens analysis, clarification and brief synthesis for runs."""

    def __init__(
        self,
        store: RedisRunStore,
        orchestrator: LensOrchestrator,
        aggregator: ClarificationAggregator,
        synthesizer: BriefSynthesizer,
        sink: EventSink | None = None,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._aggregator = aggregator
        self._synthesizer = synthesizer
        self._sink = sink or NullEventSink()

    async def submit_intake(self, payload: IntakePayload) -> DecisionRunResult:
        started = time.perf_counter()
        decision_id = _clean(payload.decision_id) or new_decision_id()
        intake = validate_intake(payload, decision_id)

        run = DecisionRunResult(
            decision_id=decision_id,
            run_id=new_run_id(),
            status=RunStatus.AWAITING_INTAKE,
            intake=intake,
        )
        self._move(run, RunStatus.PROCESSING_INITIAL)
        run.lens_outputs = await self._orchestrator.run_lenses(intake, [])
        questions = self._aggregator.extract_questions(run.lens_outputs)
        run.set_pending_questions(questions)

        if run.clarification_needed:
            self._move(run, RunStatus.AWAITING_CLARIFICATION)
        else:
            run.decision_brief = await self._synthesizer.synthesize(intake, run.lens_outputs, [])
            self._move(run, RunStatus.COMPLETE)

        stored = await asyncio.to_thread(self._store.insert, run)
        self._finish("intake", stored, started)
        return stored

    async def submit_clarification(self, submission: ClarificationSubmission) -> DecisionRunResult:
        """Apply one answer round, re-run every lens and always finish with a brief.

        A second clarification round is never requested: questions raised by the
        re-run are dropped from the final lens outputs.
        """

        started = time.perf_counter()
        self._aggregator.validate_submission(submission)
        run = await asyncio.to_thread(self._store.get, submission.run_id)
        if run is None:
            raise NotFoundError("Run not found. Please start a new decision.")

        clarification = self._aggregator.accept(run, submission)
        self._aggregator.merge(run, clarification)
        self._move(run, RunStatus.PROCESSING_CLARIFICATION)

        outputs = await self._orchestrator.run_lenses(run.intake, run.clarifications)
        dropped = sum(len(output.questions_to_answer_next) for output in outputs)
        if dropped:
            _logger.info("Run %s: ignoring %d follow-up questions after clarification", run.run_id, dropped)
        final_outputs = [output.model_copy(update={"questions_to_answer_next": []}) for output in outputs]
        brief = await self._synthesizer.synthesize(run.intake, final_outputs, run.clarifications)

        run.lens_outputs = final_outputs
        run.decision_brief = brief
        run.set_pending_questions([])
        self._move(run, RunStatus.COMPLETE)

        stored = await asyncio.to_thread(self._store.replace, run)
        self._finish("clarification", stored, started)
        return stored

    def get_run(self, run_id: str) -> DecisionRunResult:
        run = self._store.get(run_id)
        if run is None:
            raise NotFoundError("Run not found")
        return run

    def list_runs(self, decision_id: str) -> list[DecisionRunResult]:
        return self._store.list_for_decision(decision_id)

    def _move(self, run: DecisionRunResult, status: RunStatus) -> None:
        _logger.debug("Run %s: %s -> %s", run.run_id, run.status.value, status.value)
        run.status = status

    def _finish(self, transition: str, run: DecisionRunResult, started: float) -> None:
        duration = time.perf_counter() - started
        record_transition(transition, run.status.value, duration)
        _logger.info(
            "Run %s %s transition finished: status=%s lenses=%d questions=%d",
            run.run_id,
            transition,
            run.status.value,
            len(run.lens_outputs),
            len(run.clarification_questions),
        )
        event = {
            "event_type": "decision_run_transition",
            "transition": transition,
            "run_id": run.run_id,
            "decision_id": run.decision_id,
            "status": run.status.value,
            "posture": run.intake.posture,
            "lens_confidence": {output.lens: output.confidence.value for output in run.lens_outputs},
            "question_count": len(run.clarification_questions),
            "clarification_rounds": len(run.clarifications),
            "duration_seconds": round(duration, 3),
            "timestamp": _now().isoformat(),
        }
        # The run is already stored; a sink failure must not fail the request.
        try:
            self._sink.publish(event)
        except Exception:
            _logger.exception("Failed to publish %s event for run %s", transition, run.run_id)
