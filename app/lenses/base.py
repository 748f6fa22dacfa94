"""Shared machinery for lens evaluators.

A lens turns the intake plus the clarification history into one
schema-validated :data:`~app.models.domain.LensOutput`. Subclasses only
declare their output model, posture guidance and prompt wording; rendering,
the provider call and output enforcement live here.
"""

from __future__ import annotations

import logging
import time
from typing import Any, ClassVar, Sequence

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import UpstreamAnalysisError
from app.models.domain import (
    UNKNOWN_ANSWER,
    AnswerType,
    Clarification,
    ClarificationAnswer,
    DecisionIntake,
    LensName,
    LensOutput,
    Posture,
)
from app.providers.base import LLMError, LLMMessage, LLMProvider
from app.telemetry import increment_lens_failure

_logger = logging.getLogger(__name__)

UNKNOWN_RENDERING = "unknown (user didn't know)"

# Fields a lens may omit without failing; core analytical fields have no default.
DEFAULTABLE_FIELDS = (
    "assumptions_detected",
    "blind_spots",
    "tradeoffs",
    "remaining_uncertainty",
    "questions_to_answer_next",
)


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_answer(answer: ClarificationAnswer) -> str:
    """Render an answer value the way lenses read it."""

    value = answer.answer
    if value == UNKNOWN_ANSWER:
        return UNKNOWN_RENDERING
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        text = _format_number(value)
        return f"{text}%" if answer.answer_type == AnswerType.PERCENTAGE else text
    return str(value)


def render_answer_lines(clarifications: Sequence[Clarification]) -> list[str]:
    return [
        f"- {answer.question_id} ({answer.lens.value}): {format_answer(answer)}"
        for clarification in clarifications
        for answer in clarification.answers
    ]


def render_intake(intake: DecisionIntake) -> str:
    parts = [
        f"**Situation:** {intake.situation}",
        f"**Constraints:** {intake.constraints}",
    ]
    if intake.knowns_assumptions:
        parts.append(f"**What I know / am assuming:** {intake.knowns_assumptions}")
    if intake.unknowns:
        parts.append(f"**What I don't know:** {intake.unknowns}")
    return "\n\n".join(parts)


class LensEvaluator:
    """Runs one analytical lens against a decision."""

    lens: ClassVar[LensName]
    output_model: ClassVar[type[BaseModel]]
    role: ClassVar[str]
    task: ClassVar[str]
    focus: ClassVar[str]
    posture_guidance: ClassVar[dict[str, str]]

    def __init__(self, provider: LLMProvider, *, temperature: float = 0.7, max_tokens: int = 2048) -> None:
        self._provider = provider
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def schema_name(self) -> str:
        return f"{self.lens.value}_lens"

    def posture_instruction(self, intake: DecisionIntake) -> str:
        template = self.posture_guidance[intake.posture]
        if intake.posture == Posture.PRESSURE_TEST.value:
            return template.format(leaning=intake.leaning_direction)
        return template

    def build_messages(
        self,
        intake: DecisionIntake,
        clarifications: Sequence[Clarification] = (),
    ) -> list[LLMMessage]:
        system_prompt = (
            f"{self.role}\n\n{self.posture_instruction(intake)}\n\n"
            "Be specific and actionable. Avoid generic advice. Ground your analysis in the specific "
            "situation described.\n\n"
            f"If critical information is missing that would significantly change your {self.focus} "
            "analysis, include 1-3 focused follow-up questions. Only ask questions if the gaps are significant."
        )
        user_content = f"## Decision Context\n\n{render_intake(intake)}\n\n{self.task}"
        answer_lines = render_answer_lines(clarifications)
        if answer_lines:
            user_content += (
                "\n\n## Follow-up answers from the user\n"
                + "\n".join(answer_lines)
                + f"\n\nUse these answers to refine your {self.focus} analysis. Do not ask the same questions again."
            )
        return [LLMMessage("system", system_prompt), LLMMessage("user", user_content)]

    def parse(self, raw: Any) -> LensOutput:
        """Validate provider output against this lens's schema.

        Missing list fields listed in ``DEFAULTABLE_FIELDS`` become empty;
        anything else that does not conform raises ``UpstreamAnalysisError``.
        """

        if not isinstance(raw, dict):
            raise self._nonconforming("did not return structured output")
        payload = {key: value for key, value in raw.items() if not (key in DEFAULTABLE_FIELDS and value is None)}
        payload["lens"] = self.lens.value
        questions = payload.get("questions_to_answer_next")
        if isinstance(questions, list):
            payload["questions_to_answer_next"] = [
                {**question, "lens": self.lens.value} if isinstance(question, dict) else question
                for question in questions
            ]
        try:
            return self.output_model.model_validate(payload)
        except PydanticValidationError as exc:
            raise self._nonconforming(f"returned output violating its schema ({exc.error_count()} errors)") from exc

    async def evaluate(
        self,
        intake: DecisionIntake,
        clarifications: Sequence[Clarification] = (),
    ) -> LensOutput:
        started = time.perf_counter()
        try:
            response = await self._provider.complete(
                self.build_messages(intake, clarifications),
                schema=self.output_model.model_json_schema(),
                schema_name=self.schema_name,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            output = self.parse(response.parsed)
        except LLMError as exc:
            self._record_failure(exc.retryable)
            _logger.warning("%s lens call failed (code=%s, retryable=%s)", self.lens.value, exc.code, exc.retryable)
            raise UpstreamAnalysisError(
                f"{self.lens.value} lens analysis failed",
                source=f"lens:{self.lens.value}",
                retryable=exc.retryable,
            ) from exc
        except UpstreamAnalysisError as exc:
            self._record_failure(exc.retryable)
            _logger.warning("%s", exc)
            raise
        _logger.debug("%s lens finished in %.2fs", self.lens.value, time.perf_counter() - started)
        return output

    def _nonconforming(self, detail: str) -> UpstreamAnalysisError:
        return UpstreamAnalysisError(
            f"{self.lens.value} lens {detail}",
            source=f"lens:{self.lens.value}",
            retryable=True,
        )

    def _record_failure(self, retryable: bool) -> None:
        increment_lens_failure(self.lens.value, retryable)
