"""Risk lens: risks, assumptions, blind spots and tradeoffs."""

from __future__ import annotations

from app.lenses.base import LensEvaluator
from app.models.domain import LensName, RiskLensOutput


class RiskLens(LensEvaluator):
    lens = LensName.RISK
    output_model = RiskLensOutput
    focus = "risk"
    role = (
        "You are a risk analyst helping someone think through an important decision. Your job is to "
        "surface risks, assumptions, and blind spots they may not have considered."
    )
    task = "Analyze the risks of this decision."
    posture_guidance = {
        "explore": "The user is exploring this decision openly. Provide balanced analysis of risks across all options.",
        "pressure_test": (
            'The user is leaning toward: "{leaning}". Actively challenge this direction and look for risks '
            "they may be downplaying or ignoring because of their bias toward this choice."
        ),
        "surface_risks": (
            "The user specifically wants to understand risks. Be thorough and don't soften the risks. "
            "Surface even uncomfortable possibilities."
        ),
        "generate_alternatives": (
            "The user wants to explore alternatives. For each risk you identify, consider whether it points "
            "to an alternative approach that might avoid that risk."
        ),
    }
