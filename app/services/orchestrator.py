"""Concurrent fan-out of the configured lens evaluators."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from app.core.errors import CopilotError, UpstreamAnalysisError
from app.lenses.base import LensEvaluator
from app.models.domain import Clarification, DecisionIntake, LensOutput

_logger = logging.getLogger(__name__)


def _leaves(group: BaseExceptionGroup) -> list[BaseException]:
    leaves: list[BaseException] = []
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            leaves.extend(_leaves(exc))
        else:
            leaves.append(exc)
    return leaves


def _first_error(group: BaseExceptionGroup) -> BaseException:
    """Prefer a domain error anywhere in the group over unexpected exceptions."""

    copilot_errors = group.subgroup(CopilotError)
    if copilot_errors is not None:
        return _leaves(copilot_errors)[0]
    return _leaves(group)[0]


class LensOrchestrator:
    """Runs every lens concurrently; one failure fails the whole run.

    On the first failure the task group cancels the remaining evaluations and
    waits for them to settle before the error propagates, so callers never see
    a partial set of outputs.
    """

    def __init__(self, lenses: Sequence[LensEvaluator]) -> None:
        if not lenses:
            raise ValueError("At least one lens evaluator is required")
        self._lenses = list(lenses)

    @property
    def lens_count(self) -> int:
        return len(self._lenses)

    async def run_lenses(
        self,
        intake: DecisionIntake,
        clarifications: Sequence[Clarification] = (),
    ) -> list[LensOutput]:
        history = list(clarifications)
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(lens.evaluate(intake, history)) for lens in self._lenses]
        except BaseExceptionGroup as exc_group:
            error = _first_error(exc_group)
            _logger.warning("Lens orchestration failed for decision %s: %s", intake.decision_id, error)
            if not isinstance(error, CopilotError):
                raise UpstreamAnalysisError("Lens orchestration failed", source="orchestrator") from error
            raise error
        return [task.result() for task in tasks]
