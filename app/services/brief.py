"""Decision brief synthesis from intake, lens outputs and answers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import UpstreamAnalysisError
from app.lenses.base import render_answer_lines
from app.models.domain import (
    Clarification,
    DecisionBrief,
    DecisionIntake,
    LensOutput,
    ReversibilityLensOutput,
    RiskLensOutput,
)
from app.providers.base import LLMError, LLMMessage, LLMProvider

_logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Decision brief"

SYSTEM_PROMPT = """You are a decision coach. Given a decision context and analyses from risk and reversibility lenses, produce a brief decision brief.

Output:
- title: A short, contextual title (e.g. "Recommendation: Proceed with DB switch after staging"). Not generic like "Decision brief".
- summary: 2-4 sentences that synthesize the situation and the key findings for a busy reader.
- recommendation: One clear sentence on what the decision-maker should do next.
- key_considerations: 3-7 short items to keep in mind.
- next_steps: 3-7 concrete, actionable next steps.

Be specific to this decision. Avoid generic advice. Use the lens analyses and any user follow-up answers."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BriefDraft(BaseModel):
    """Structured payload requested from the provider."""

    title: Optional[str] = None
    summary: str = Field(..., min_length=1)
    recommendation: str = Field(..., min_length=1)
    key_considerations: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)

    @field_validator("title", "summary", "recommendation", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("key_considerations", "next_steps", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]


def _tradeoffs(output: LensOutput) -> str:
    return "; ".join(f"{t.option} (upside: {t.upside}, downside: {t.downside})" for t in output.tradeoffs)


def render_lens_outputs(lens_outputs: Sequence[LensOutput]) -> str:
    """Render risk and reversibility content; people-lens output is not included."""

    parts: list[str] = []
    for output in lens_outputs:
        if isinstance(output, RiskLensOutput):
            parts.append(f"### Risk lens\n- Top risks: {'; '.join(output.top_risks)}")
            if output.assumptions_detected:
                parts.append(f"- Assumptions: {'; '.join(output.assumptions_detected)}")
            if output.blind_spots:
                spots = "; ".join(f"{spot.area}: {spot.description}" for spot in output.blind_spots)
                parts.append(f"- Blind spots: {spots}")
            if output.tradeoffs:
                parts.append(f"- Tradeoffs: {_tradeoffs(output)}")
            if output.remaining_uncertainty:
                parts.append(f"- Remaining uncertainty: {'; '.join(output.remaining_uncertainty)}")
        elif isinstance(output, ReversibilityLensOutput):
            parts.append(f"### Reversibility lens\n- Irreversible steps: {'; '.join(output.irreversible_steps)}")
            if output.safe_to_try_first:
                parts.append(f"- Safe to try first: {'; '.join(output.safe_to_try_first)}")
            if output.assumptions_detected:
                parts.append(f"- Assumptions: {'; '.join(output.assumptions_detected)}")
            if output.tradeoffs:
                parts.append(f"- Tradeoffs: {_tradeoffs(output)}")
    return "\n".join(parts)


class BriefSynthesizer:
    """Produces exactly one :class:`DecisionBrief` per call."""

    schema_name = "decision_brief"

    def __init__(
        self,
        provider: LLMProvider,
        *,
        temperature: float = 0.5,
        max_tokens: int = 1024,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._provider = provider
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._clock = clock

    def build_messages(
        self,
        intake: DecisionIntake,
        lens_outputs: Sequence[LensOutput],
        clarifications: Sequence[Clarification] = (),
    ) -> list[LLMMessage]:
        posture = f"**Posture:** {intake.posture}"
        if intake.leaning_direction:
            posture += f" · Leaning toward: {intake.leaning_direction}"
        context = [
            f"**Situation:** {intake.situation}",
            f"**Constraints:** {intake.constraints}",
            posture,
        ]
        if intake.knowns_assumptions:
            context.append(f"**Knowns/assumptions:** {intake.knowns_assumptions}")
        if intake.unknowns:
            context.append(f"**Unknowns:** {intake.unknowns}")
        user_content = "## Decision context\n\n" + "\n\n".join(context)
        user_content += f"\n\n## Lens analyses\n\n{render_lens_outputs(lens_outputs)}"
        answer_lines = render_answer_lines(clarifications)
        if answer_lines:
            user_content += "\n\n## Follow-up answers from the user\n" + "\n".join(answer_lines)
        user_content += "\n\nProduce the decision brief (title, summary, recommendation, key_considerations, next_steps)."
        return [LLMMessage("system", SYSTEM_PROMPT), LLMMessage("user", user_content)]

    async def synthesize(
        self,
        intake: DecisionIntake,
        lens_outputs: Sequence[LensOutput],
        clarifications: Sequence[Clarification] = (),
    ) -> DecisionBrief:
        try:
            response = await self._provider.complete(
                self.build_messages(intake, lens_outputs, clarifications),
                schema=BriefDraft.model_json_schema(),
                schema_name=self.schema_name,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except LLMError as exc:
            _logger.warning("Brief synthesis call failed (code=%s, retryable=%s)", exc.code, exc.retryable)
            raise UpstreamAnalysisError("Brief synthesis failed", source="brief", retryable=exc.retryable) from exc

        if not isinstance(response.parsed, dict):
            raise UpstreamAnalysisError(
                "Brief synthesis did not return valid structured output", source="brief", retryable=True
            )
        try:
            draft = BriefDraft.model_validate(response.parsed)
        except PydanticValidationError as exc:
            raise UpstreamAnalysisError(
                "Brief synthesis returned output violating its schema", source="brief", retryable=True
            ) from exc

        return DecisionBrief(
            title=draft.title or DEFAULT_TITLE,
            generated_at=self._clock(),
            summary=draft.summary,
            recommendation=draft.recommendation,
            key_considerations=draft.key_considerations,
            next_steps=draft.next_steps,
        )
