"""Python client stubs for interacting with the Decision Copilot API."""

from .client import Answer, ClarificationRequest, DecisionCopilotClient, IntakeRequest, answers_for
from .async_client import AsyncDecisionCopilotClient

__all__ = [
    "Answer",
    "AsyncDecisionCopilotClient",
    "ClarificationRequest",
    "DecisionCopilotClient",
    "IntakeRequest",
    "answers_for",
]
