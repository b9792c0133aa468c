"""Collaborator contracts for content lookup and progress persistence.

The quiz engine and progress aggregation only talk to these abstract
classes. Concrete stores live in :mod:`study_tracker.stores`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from .models import (
    CompletionCounts,
    ContentCounts,
    ContentKind,
    Difficulty,
    Question,
    QuizResult,
    QuizSession,
)

__all__ = [
    "ContentRepository",
    "ProgressStore",
    "load_questions",
]

_LOGGER = logging.getLogger("study_tracker.repository")


class ContentRepository(ABC):
    """Read access to topic content."""

    @abstractmethod
    async def list_questions(
        self, topic: str, difficulty: Difficulty
    ) -> Sequence[Question]:
        """Return the questions for ``topic`` at ``difficulty`` in order.

        An empty sequence means no content; exceptions mean transport
        failure.
        """

    @abstractmethod
    async def list_ids(self, topic: str, kind: ContentKind) -> Iterable[str]:
        """Return ids of every ``kind`` item filed under ``topic``."""

    async def list_content_ids(self, topic: str) -> ContentCounts:
        """Fetch the three id sets for ``topic`` independently.

        A failed fetch degrades that set to empty and adds a warning.
        """

        kinds = tuple(ContentKind)
        fetched = await asyncio.gather(
            *(self.list_ids(topic, kind) for kind in kinds),
            return_exceptions=True,
        )
        sets, warnings = _collect(kinds, fetched, topic, "content")
        return ContentCounts(
            video_ids=sets[ContentKind.VIDEO],
            mcq_ids=sets[ContentKind.MCQ],
            problem_ids=sets[ContentKind.PROBLEM],
            warnings=warnings,
        )


class ProgressStore(ABC):
    """Per-user completion flags and quiz results."""

    @abstractmethod
    async def completed_ids(
        self,
        user_id: str,
        kind: ContentKind,
        candidate_ids: frozenset[str],
    ) -> Iterable[str]:
        """Return the subset of ``candidate_ids`` the user completed.

        Videos count when marked completed, MCQs and problems when
        attempted.
        """

    @abstractmethod
    async def record_quiz_completion(
        self, session: QuizSession, result: QuizResult
    ) -> None:
        """Upsert the session summary keyed by ``session.session_key``."""

    @abstractmethod
    async def record_question_attempt(
        self,
        user_id: str,
        question_id: str,
        selected_option: str,
        is_correct: bool,
    ) -> None:
        """Upsert one attempt keyed by ``(user_id, question_id)``."""

    async def get_completion_counts(
        self,
        topic: str,
        user_id: str,
        content: ContentCounts,
    ) -> CompletionCounts:
        kinds = tuple(ContentKind)
        fetched = await asyncio.gather(
            *(
                self.completed_ids(user_id, kind, content.ids_for(kind))
                for kind in kinds
            ),
            return_exceptions=True,
        )
        sets, warnings = _collect(kinds, fetched, topic, "completion")
        return CompletionCounts(
            completed_video_ids=sets[ContentKind.VIDEO] & content.video_ids,
            attempted_mcq_ids=sets[ContentKind.MCQ] & content.mcq_ids,
            attempted_problem_ids=(
                sets[ContentKind.PROBLEM] & content.problem_ids
            ),
            warnings=warnings,
        )


def _collect(
    kinds: Sequence[ContentKind],
    fetched: Sequence[object],
    topic: str,
    label: str,
) -> tuple[dict[ContentKind, frozenset[str]], tuple[str, ...]]:
    sets: dict[ContentKind, frozenset[str]] = {}
    warnings: list[str] = []
    for kind, value in zip(kinds, fetched):
        if isinstance(value, BaseException):
            if not isinstance(value, Exception):
                raise value
            _LOGGER.warning(
                "Fetch failed; treating as empty",
                extra={
                    "topic": topic,
                    "kind": kind.value,
                    "source": label,
                    "error": str(value),
                },
            )
            warnings.append(
                f"Could not load {kind.value} {label} for '{topic}': {value}"
            )
            sets[kind] = frozenset()
            continue
        sets[kind] = frozenset(str(item) for item in value)
    return sets, tuple(warnings)


async def load_questions(
    repository: ContentRepository,
    topic: str,
    difficulty: Difficulty,
    *,
    logger: logging.Logger | None = None,
) -> list[Question]:
    """Return questions for a quiz option, or ``[]`` when unavailable."""

    log = logger or _LOGGER
    try:
        questions = list(await repository.list_questions(topic, difficulty))
    except Exception as exc:
        log.warning(
            "Question listing failed; quiz disabled",
            extra={
                "topic": topic,
                "difficulty": difficulty.value,
                "error": str(exc),
            },
        )
        return []
    log.debug(
        "Loaded questions",
        extra={
            "topic": topic,
            "difficulty": difficulty.value,
            "count": len(questions),
        },
    )
    return questions
