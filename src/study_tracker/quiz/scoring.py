"""Result computation and persistence batches for completed sessions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ..models import (
    CompletionReason,
    Question,
    QuestionOutcome,
    QuizResult,
    QuizSession,
    round_percent,
)

__all__ = [
    "AttemptRecord",
    "CompletionBatch",
    "score_session",
    "build_completion_batch",
]


@dataclass(frozen=True)
class AttemptRecord:
    """One scored MCQ attempt, upserted per ``(user_id, question_id)``."""

    user_id: str
    question_id: str
    selected_option: str
    is_correct: bool


@dataclass(frozen=True)
class CompletionBatch:
    """Everything written when a session completes."""

    session: QuizSession
    result: QuizResult
    attempts: tuple[AttemptRecord, ...]


def score_session(
    questions: Sequence[Question],
    answers: Mapping[str, str],
    reason: CompletionReason = "finished",
) -> QuizResult:
    """Score ``answers`` against ``questions`` in question order.

    A question without a recorded answer is incorrect.
    """

    outcomes: list[QuestionOutcome] = []
    for question in questions:
        selected = answers.get(question.id)
        outcomes.append(
            QuestionOutcome(
                question_id=question.id,
                user_answer=selected,
                correct=selected == question.correct_option_label,
            )
        )
    correct = sum(1 for item in outcomes if item.correct)
    total = len(outcomes)
    return QuizResult(
        correct_count=correct,
        total_count=total,
        score_percent=round_percent(correct, total),
        outcomes=tuple(outcomes),
        completion_reason=reason,
    )


def build_completion_batch(
    session: QuizSession, result: QuizResult
) -> CompletionBatch:
    if session.user_id is None:
        raise ValueError("Cannot persist a session without a user id.")
    attempts = tuple(
        AttemptRecord(
            user_id=session.user_id,
            question_id=outcome.question_id,
            selected_option=outcome.user_answer,
            is_correct=outcome.correct,
        )
        for outcome in result.outcomes
        if outcome.user_answer is not None
    )
    return CompletionBatch(session=session, result=result, attempts=attempts)
