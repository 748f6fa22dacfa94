from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Tuple

import httpx


@dataclass
class IntakeRequest:
    """Convenience wrapper for intake payloads."""

    situation: str
    constraints: str
    posture: str = "explore"
    leaning_direction: str | None = None
    knowns_assumptions: str | None = None
    unknowns: str | None = None
    decision_id: str | None = None

    def to_body(self) -> Dict[str, Any]:
        intake = {key: value for key, value in asdict(self).items() if value is not None}
        return {"type": "intake", "intake": intake}


@dataclass
class Answer:
    question_id: str
    lens: str
    answer: Any
    answer_type: str


@dataclass
class ClarificationRequest:
    decision_id: str
    run_id: str
    answers: list[Answer] = field(default_factory=list)
    clarification_round: int | None = None

    def to_body(self) -> Dict[str, Any]:
        clarification: Dict[str, Any] = {"answers": [asdict(answer) for answer in self.answers]}
        if self.clarification_round is not None:
            clarification["clarification_round"] = self.clarification_round
        return {
            "type": "clarification",
            "decision_id": self.decision_id,
            "run_id": self.run_id,
            "clarification": clarification,
        }


AnswerKey = Tuple[str, str]


def answers_for(run: Dict[str, Any], values: Mapping[AnswerKey, Any]) -> list[Answer]:
    """Build answers for the run's pending questions.

    ``values`` is keyed by ``(lens, question_id)`` because two lenses may ask
    questions with the same id and different answer types. Questions without
    a value are left unanswered.
    """

    answers: list[Answer] = []
    for question in run.get("clarification_questions", []):
        key = (question["lens"], question["question_id"])
        if key in values:
            answers.append(
                Answer(
                    question_id=question["question_id"],
                    lens=question["lens"],
                    answer=values[key],
                    answer_type=question["answer_type"],
                )
            )
    return answers



class DecisionCopilotClient:
    """Lightweight synchronous client for the Decision Copilot API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def __enter__(self) -> "DecisionCopilotClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _call(self, method: str, path: str, body: Dict[str, Any] | None = None) -> dict:
        response = self._http.request(method, path, json=body)
        response.raise_for_status()
        return response.json()

    def submit_intake(self, request: IntakeRequest) -> dict:
        return self._call("POST", "decision/run", request.to_body())

    def submit_clarification(self, request: ClarificationRequest) -> dict:
        return self._call("POST", "decision/run", request.to_body())

    def get_run(self, run_id: str) -> dict:
        return self._call("GET", f"decision/run/{run_id}")

    def list_runs(self, decision_id: str) -> dict:
        return self._call("GET", f"decision/{decision_id}/runs")

    def run_to_completion(self, request: IntakeRequest, answers: Mapping[AnswerKey, Any]) -> dict:
        """Submit an intake and, if asked, answer its questions from ``answers``.

        ``answers`` uses the ``(lens, question_id)`` keys of :func:`answers_for`.
        """

        run = self.submit_intake(request)
        if run["status"] != "awaiting_clarification":
            return run
        return self.submit_clarification(
            ClarificationRequest(
                decision_id=run["decision_id"],
                run_id=run["run_id"],
                answers=answers_for(run, answers),
            )
        )

