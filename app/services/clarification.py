"""Clarification handling: pending questions in, validated answer rounds out."""

from __future__ import annotations

import logging
from typing import Sequence

from app.core.errors import StateConflictError, ValidationError
from app.models.domain import (
    AnswerType,
    Clarification,
    DecisionRunResult,
    LensOutput,
    LensQuestion,
    RunStatus,
)
from app.schemas.runs import ClarificationSubmission

_logger = logging.getLogger(__name__)


class ClarificationAggregator:
    """Merges follow-up questions across lenses and validates answer rounds.

    Questions are addressed by ``(lens, question_id)``; two lenses may reuse a
    ``question_id`` and both questions are kept.
    """

    def extract_questions(self, lens_outputs: Sequence[LensOutput]) -> list[LensQuestion]:
        questions: list[LensQuestion] = []
        seen: set[tuple] = set()
        for output in lens_outputs:
            for question in output.questions_to_answer_next:
                if question.key in seen:
                    _logger.debug("Dropping repeated question %s from %s lens", question.question_id, output.lens)
                    continue
                seen.add(question.key)
                questions.append(question)
        return questions

    def validate_submission(self, submission: ClarificationSubmission) -> None:
        if not (submission.decision_id or "").strip():
            raise ValidationError("decision_id is required")
        if not (submission.run_id or "").strip():
            raise ValidationError("run_id is required")
        if not submission.answers:
            raise ValidationError("clarification.answers is required")

    def accept(self, run: DecisionRunResult, submission: ClarificationSubmission) -> Clarification:
        """Validate ``submission`` against ``run`` and build the next clarification round.

        Unanswered questions are allowed, including required ones; at least one
        answer must be present.
        """

        self.validate_submission(submission)
        if run.status != RunStatus.AWAITING_CLARIFICATION:
            raise StateConflictError(f"Cannot submit clarification for run in status: {run.status.value}")
        if submission.decision_id != run.decision_id:
            raise ValidationError("decision_id does not match the run")

        expected_round = len(run.clarifications) + 1
        if submission.clarification_round is not None and submission.clarification_round != expected_round:
            raise ValidationError(f"clarification_round must be {expected_round}")

        pending = {question.key: question for question in run.clarification_questions}
        answered: set[tuple] = set()
        for answer in submission.answers:
            question = pending.get(answer.key)
            if question is None:
                raise ValidationError(
                    f"No pending question '{answer.question_id}' for lens '{answer.lens.value}'"
                )
            if answer.key in answered:
                raise ValidationError(f"Question '{answer.question_id}' ({answer.lens.value}) answered twice")
            if answer.answer_type != question.answer_type:
                raise ValidationError(
                    f"Question '{answer.question_id}' expects a {question.answer_type.value} answer"
                )
            if question.answer_type == AnswerType.ENUM and answer.answer not in (question.options or []):
                raise ValidationError(f"Answer to '{answer.question_id}' must be one of: {', '.join(question.options)}")
            answered.add(answer.key)

        return Clarification(
            decision_id=run.decision_id,
            run_id=run.run_id,
            clarification_round=expected_round,
            answers=list(submission.answers),
        )

    def merge(self, run: DecisionRunResult, clarification: Clarification) -> None:
        """Append the round to the run's history; earlier rounds are kept."""

        run.clarifications.append(clarification)
