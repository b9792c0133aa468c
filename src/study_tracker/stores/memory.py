"""Dict-backed collaborators for embedding callers and tests."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from ..models import (
    ContentKind,
    Difficulty,
    Question,
    QuizResult,
    QuizSession,
)
from ..repository import ContentRepository, ProgressStore

__all__ = ["InMemoryContentRepository", "InMemoryProgressStore"]


class InMemoryContentRepository(ContentRepository):
    def __init__(self) -> None:
        self._questions: dict[str, list[Question]] = defaultdict(list)
        self._ids: dict[tuple[str, ContentKind], list[str]] = defaultdict(list)

    def add_question(self, topic: str, question: Question) -> None:
        self._questions[topic].append(question)
        self._ids[(topic, ContentKind.MCQ)].append(question.id)

    def add_content(self, topic: str, kind: ContentKind, *ids: str) -> None:
        if kind is ContentKind.MCQ:
            raise ValueError("Use add_question() for MCQs.")
        self._ids[(topic, kind)].extend(ids)

    async def list_questions(
        self, topic: str, difficulty: Difficulty
    ) -> Sequence[Question]:
        return [
            question
            for question in self._questions.get(topic, [])
            if question.difficulty is difficulty
        ]

    async def list_ids(self, topic: str, kind: ContentKind) -> Iterable[str]:
        return list(self._ids.get((topic, kind), []))


class InMemoryProgressStore(ProgressStore):
    def __init__(self) -> None:
        self.video_progress: dict[tuple[str, str], bool] = {}
        self.coding_progress: dict[tuple[str, str], bool] = {}
        self.mcq_attempts: dict[tuple[str, str], dict[str, Any]] = {}
        self.quiz_sessions: dict[tuple, dict[str, Any]] = {}

    def mark_video_completed(
        self, user_id: str, video_id: str, completed: bool = True
    ) -> None:
        self.video_progress[(user_id, video_id)] = completed

    def mark_problem_attempted(
        self, user_id: str, problem_id: str, attempted: bool = True
    ) -> None:
        self.coding_progress[(user_id, problem_id)] = attempted

    async def completed_ids(
        self,
        user_id: str,
        kind: ContentKind,
        candidate_ids: frozenset[str],
    ) -> Iterable[str]:
        if kind is ContentKind.VIDEO:
            flags = self.video_progress
        elif kind is ContentKind.PROBLEM:
            flags = self.coding_progress
        else:
            return [
                qid
                for (uid, qid) in self.mcq_attempts
                if uid == user_id and qid in candidate_ids
            ]
        return [
            item_id
            for (uid, item_id), done in flags.items()
            if uid == user_id and done and item_id in candidate_ids
        ]

    async def record_quiz_completion(
        self, session: QuizSession, result: QuizResult
    ) -> None:
        self.quiz_sessions[session.session_key] = {
            "topic": session.topic,
            "difficulty": session.difficulty.value,
            "total_questions": result.total_count,
            "correct_answers": result.correct_count,
            "score": result.score_percent,
            "time_limit_seconds": session.time_limit_seconds,
        }

    async def record_question_attempt(
        self,
        user_id: str,
        question_id: str,
        selected_option: str,
        is_correct: bool,
    ) -> None:
        self.mcq_attempts[(user_id, question_id)] = {
            "selected_answer": selected_option,
            "is_correct": is_correct,
        }
