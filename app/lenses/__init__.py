"""Lens evaluators; the configured set is fixed."""

from __future__ import annotations

from app.providers.base import LLMProvider

from .base import LensEvaluator, format_answer, render_answer_lines, render_intake
from .people import PeopleLens
from .reversibility import ReversibilityLens
from .risk import RiskLens

LENS_CLASSES: tuple[type[LensEvaluator], ...] = (RiskLens, ReversibilityLens, PeopleLens)


def default_lenses(provider: LLMProvider, *, temperature: float = 0.7, max_tokens: int = 2048) -> list[LensEvaluator]:
    return [lens_cls(provider, temperature=temperature, max_tokens=max_tokens) for lens_cls in LENS_CLASSES]


__all__ = [
    "LENS_CLASSES",
    "LensEvaluator",
    "PeopleLens",
    "ReversibilityLens",
    "RiskLens",
    "default_lenses",
    "format_answer",
    "render_answer_lines",
    "render_intake",
]
