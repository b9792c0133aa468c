"""Timed quiz session controller.

A controller owns exactly one :class:`~study_tracker.models.QuizSession` and
walks it through ``NotStarted -> InProgress -> Completed``. Time expiry and
answering the last question share one completion path, which scores the
session, cancels the countdown and hands a single persistence batch to the
progress store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import EmptyQuestionSet, InvalidTransition
from ..models import (
    CompletionReason,
    Difficulty,
    Question,
    QuizResult,
    QuizSession,
    SessionStatus,
)
from ..repository import ProgressStore
from .scoring import CompletionBatch, build_completion_batch, score_session
from .timer import RepeatingTimer, TimerFactory, asyncio_timer_factory

__all__ = [
    "PersistenceReport",
    "QuizSessionController",
    "TICK_SECONDS",
]

TICK_SECONDS = 1.0

CompletionCallback = Callable[[QuizResult], None]


@dataclass(frozen=True)
class PersistenceReport:
    """Outcome of writing a completed session to the progress store."""

    ok: bool
    attempts_written: int = 0
    error: str | None = None
    skipped: bool = False

    @property
    def notice(self) -> str | None:
        if self.ok:
            return None
        return f"Your score could not be saved: {self.error}"


class QuizSessionController:
    """Drive a single timed quiz attempt."""

    def __init__(
        self,
        session: QuizSession,
        *,
        store: Optional[ProgressStore] = None,
        timer_factory: Optional[TimerFactory] = None,
        on_complete: Optional[CompletionCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not session.questions:
            raise EmptyQuestionSet(session.topic, session.difficulty.value)
        self._session = session
        self._store = store
        self._timer_factory = timer_factory or asyncio_timer_factory
        self._on_complete = on_complete
        self._logger = logger or logging.getLogger("study_tracker.quiz")
        self._timer: RepeatingTimer | None = None
        self._result: QuizResult | None = None
        self._batch: CompletionBatch | None = None
        self._persist_task: asyncio.Future[PersistenceReport] | None = None
        self._abandoned = False

    @classmethod
    def create(
        cls,
        topic: str,
        difficulty: Difficulty | str,
        questions: Sequence[Question],
        time_limit_seconds: int,
        *,
        user_id: str | None = None,
        **kwargs,
    ) -> "QuizSessionController":
        level = Difficulty.from_value(difficulty)
        if not questions:
            raise EmptyQuestionSet(topic, level.value)
        if time_limit_seconds <= 0:
            raise ValueError("time_limit_seconds must be positive")
        session = QuizSession(
            topic=topic,
            difficulty=level,
            questions=tuple(questions),
            time_limit_seconds=int(time_limit_seconds),
            user_id=user_id,
        )
        return cls(session, **kwargs)

    @property
    def session(self) -> QuizSession:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    @property
    def result(self) -> QuizResult:
        if self._result is None:
            raise InvalidTransition("read the result", self._state_name())
        return self._result

    def start(self) -> None:
        self._require("start", SessionStatus.NOT_STARTED)
        # A factory that raises leaves the session NotStarted.
        timer = self._timer_factory(TICK_SECONDS, self._on_timer)
        session = self._session
        session.status = SessionStatus.IN_PROGRESS
        session.started_at = datetime.now(timezone.utc)
        session.remaining_seconds = session.time_limit_seconds
        self._timer = timer
        self._logger.info(
            "Quiz started",
            extra={
                "topic": session.topic,
                "difficulty": session.difficulty.value,
                "question_count": session.total_questions,
                "time_limit_seconds": session.time_limit_seconds,
            },
        )

    def select_answer(self, option_label: str) -> bool:
        """Record a tentative answer for the current question.

        Returns ``False`` without changing anything when the label is not
        an option of the current question.
        """

        self._require("select an answer", SessionStatus.IN_PROGRESS)
        question = self._session.current
        choice = question.choice_for(option_label)
        if choice is None:
            self._logger.debug(
                "Ignored unknown option",
                extra={"question_id": question.id, "option": option_label},
            )
            return False
        self._session.tentative = choice.label
        return True

    def advance(self) -> bool:
        """Commit the tentative answer and move on.

        Without a tentative answer nothing changes and ``False`` is returned.
        """

        self._require("advance", SessionStatus.IN_PROGRESS)
        session = self._session
        if session.tentative is None:
            return False
        session.answers[session.current.id] = session.tentative
        session.tentative = None
        if session.is_last:
            self._complete("finished")
        else:
            session.current_index += 1
        return True

    def tick(self) -> None:
        self._require("tick", SessionStatus.IN_PROGRESS)
        session = self._session
        session.remaining_seconds = max(0, session.remaining_seconds - 1)
        if session.remaining_seconds == 0:
            self._complete("expired")

    def cancel(self) -> None:
        """Abandon the attempt; nothing is scored or persisted."""

        if self._abandoned:
            return
        self._require(
            "abandon", SessionStatus.NOT_STARTED, SessionStatus.IN_PROGRESS
        )
        self._stop_timer()
        self._abandoned = True
        self._session.tentative = None
        self._logger.info(
            "Quiz abandoned",
            extra={
                "topic": self._session.topic,
                "difficulty": self._session.difficulty.value,
                "answered": len(self._session.answers),
            },
        )

    async def persisted(self) -> PersistenceReport:
        """Wait for the completion batch to be written.

        The batch is built once at completion; repeated calls await the same
        write.
        """

        if self._result is None:
            raise InvalidTransition("persist", self._state_name())
        if self._batch is None or self._store is None:
            return PersistenceReport(ok=True, skipped=True)
        if self._persist_task is None:
            self._persist_task = asyncio.ensure_future(
                self._write_batch(self._store, self._batch)
            )
        return await self._persist_task

    def _on_timer(self) -> None:
        if self._abandoned or self.status is not SessionStatus.IN_PROGRESS:
            self._stop_timer()
            return
        self.tick()

    def _complete(self, reason: CompletionReason) -> None:
        session = self._session
        self._stop_timer()
        if session.tentative is not None:
            session.answers[session.current.id] = session.tentative
            session.tentative = None
        session.status = SessionStatus.COMPLETED
        session.completed_at = datetime.now(timezone.utc)
        result = score_session(session.questions, session.answers, reason)
        self._result = result
        self._logger.info(
            "Quiz completed",
            extra={
                "topic": session.topic,
                "difficulty": session.difficulty.value,
                "reason": reason,
                "correct": result.correct_count,
                "total": result.total_count,
                "score_percent": result.score_percent,
            },
        )
        if self._store is not None and session.user_id is not None:
            self._batch = build_completion_batch(session, result)
            self._schedule_persistence(self._store, self._batch)
        if self._on_complete is not None:
            self._on_complete(result)

    def _schedule_persistence(
        self, store: ProgressStore, batch: CompletionBatch
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Written on the first ``persisted()`` call instead.
            return
        self._persist_task = loop.create_task(self._write_batch(store, batch))

    async def _write_batch(
        self, store: ProgressStore, batch: CompletionBatch
    ) -> PersistenceReport:
        written = 0
        try:
            for attempt in batch.attempts:
                await store.record_question_attempt(
                    attempt.user_id,
                    attempt.question_id,
                    attempt.selected_option,
                    attempt.is_correct,
                )
                written += 1
            await store.record_quiz_completion(
                batch.session, batch.result
            )
        except Exception as exc:
            self._logger.error(
                "Failed to persist quiz completion",
                exc_info=True,
                extra={
                    "topic": batch.session.topic,
                    "attempts_written": written,
                },
            )
            return PersistenceReport(
                ok=False, attempts_written=written, error=str(exc)
            )
        self._logger.info(
            "Persisted quiz completion",
            extra={
                "topic": batch.session.topic,
                "attempts_written": written,
            },
        )
        return PersistenceReport(ok=True, attempts_written=written)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _require(self, operation: str, *allowed: SessionStatus) -> None:
        if self._abandoned or self._session.status not in allowed:
            raise InvalidTransition(operation, self._state_name())

    def _state_name(self) -> str:
        if self._abandoned:
            return "Abandoned"
        return self._session.status.value
