"""Domain error taxonomy shared by services and routers."""

from __future__ import annotations


class CopilotError(Exception):
    """Base class for errors raised by the decision run workflow."""


class ValidationError(CopilotError):
    """Malformed or incomplete caller input."""


class NotFoundError(CopilotError):
    """A referenced run does not exist."""


class StateConflictError(CopilotError):
    """The run is not in a state that accepts the requested transition."""


class UpstreamAnalysisError(CopilotError):
    """A lens evaluation or brief synthesis call failed.

    ``retryable`` is preserved from the provider so callers can decide on
    backoff; the message returned to end users stays generic.
    """

    def __init__(self, message: str, *, source: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.source = source
        self.retryable = retryable


class PersistenceError(CopilotError):
    """The run store could not complete a write."""
