"""Reversibility lens: what is hard to undo and what is safe to try first."""

from __future__ import annotations

from app.lenses.base import LensEvaluator
from app.models.domain import LensName, ReversibilityLensOutput


class ReversibilityLens(LensEvaluator):
    lens = LensName.REVERSIBILITY
    output_model = ReversibilityLensOutput
    focus = "reversibility"
    role = (
        "You are an advisor helping someone think through the reversibility of an important decision. "
        "Identify what would be hard or impossible to undo once done (irreversible steps) and what they "
        "could try first with minimal commitment (safe to try first)."
    )
    task = "Analyze what's reversible vs. irreversible in this decision, and what's safe to try first."
    posture_guidance = {
        "explore": (
            "The user is exploring this decision openly. Identify what's reversible vs irreversible and what "
            "they could try first with low commitment."
        ),
        "pressure_test": (
            'The user is leaning toward: "{leaning}". Stress-test this by naming what would be hard to undo '
            "if they go this way, and what they could try before committing."
        ),
        "surface_risks": (
            "The user wants to understand risks. Focus on irreversible steps and what could lock them in; "
            "suggest safe experiments first."
        ),
        "generate_alternatives": (
            "The user wants to explore alternatives. For each irreversible step, consider whether there's a "
            "reversible path or a smaller step to try first."
        ),
    }
