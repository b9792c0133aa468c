"""Content repository backed by JSONL files in the workspace."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Optional

from ..core.files import read_jsonl
from ..errors import TransportFailure
from ..models import ContentKind, Difficulty, Question
from ..repository import ContentRepository

__all__ = ["CONTENT_FILES", "JsonlContentRepository"]

CONTENT_FILES = {
    ContentKind.VIDEO: "videos.jsonl",
    ContentKind.MCQ: "mcqs.jsonl",
    ContentKind.PROBLEM: "problems.jsonl",
}


class JsonlContentRepository(ContentRepository):
    """Read ``videos.jsonl``, ``mcqs.jsonl`` and ``problems.jsonl``.

    Each row carries at least ``id`` and ``topic``. MCQ rows additionally
    follow :meth:`Question.from_dict`; invalid MCQ rows are skipped with a
    warning. A missing file means no content of that kind.
    """

    def __init__(
        self, root: Path, *, logger: Optional[logging.Logger] = None
    ) -> None:
        self._root = Path(root)
        self._logger = logger or logging.getLogger("study_tracker.content")

    @property
    def root(self) -> Path:
        return self._root

    async def list_questions(
        self, topic: str, difficulty: Difficulty
    ) -> Sequence[Question]:
        rows = await self._rows(ContentKind.MCQ)
        questions: list[Question] = []
        for row in rows:
            if str(row.get("topic", "")) != topic:
                continue
            try:
                question = Question.from_dict(row, topic=topic)
            except ValueError as exc:
                self._logger.warning(
                    "Skipping invalid MCQ row",
                    extra={"id": row.get("id"), "error": str(exc)},
                )
                continue
            if question.difficulty is difficulty:
                questions.append(question)
        return questions

    async def list_ids(self, topic: str, kind: ContentKind) -> Iterable[str]:
        rows = await self._rows(kind)
        return [
            str(row["id"])
            for row in rows
            if str(row.get("topic", "")) == topic and row.get("id") is not None
        ]

    async def _rows(self, kind: ContentKind) -> list[dict]:
        path = self._root / CONTENT_FILES[kind]
        if not path.exists():
            return []
        try:
            return await asyncio.to_thread(read_jsonl, path)
        except (OSError, ValueError) as exc:
            raise TransportFailure(
                f"Unable to read {kind.value} content: {exc}"
            ) from exc
