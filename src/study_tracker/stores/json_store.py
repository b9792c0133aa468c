"""Progress store persisted as a single JSON document."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, MutableMapping

from ..core.files import (
    FileLock,
    FileLockTimeout,
    atomic_write_json,
    read_json,
)
from ..errors import PersistenceFailure
from ..models import ContentKind, QuizResult, QuizSession
from ..repository import ProgressStore

__all__ = ["JsonProgressStore"]

_TABLES = (
    "video_progress",
    "coding_progress",
    "mcq_attempts",
    "quiz_sessions",
)
_KEY_SEPARATOR = "|"

Payload = MutableMapping[str, MutableMapping[str, Any]]


class JsonProgressStore(ProgressStore):
    """Upsert-only tables stored in ``path``.

    Rows are keyed by joined identities, so writing the same attempt or
    session twice leaves the document unchanged apart from timestamps.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    async def completed_ids(
        self,
        user_id: str,
        kind: ContentKind,
        candidate_ids: frozenset[str],
    ) -> Iterable[str]:
        payload = await asyncio.to_thread(self._read)
        if kind is ContentKind.VIDEO:
            table, flag = payload["video_progress"], "completed"
        elif kind is ContentKind.PROBLEM:
            table, flag = payload["coding_progress"], "attempted"
        else:
            table, flag = payload["mcq_attempts"], None
        found: list[str] = []
        for key, row in table.items():
            owner, _, item_id = key.partition(_KEY_SEPARATOR)
            if owner != user_id or item_id not in candidate_ids:
                continue
            if flag is None or row.get(flag):
                found.append(item_id)
        return found

    async def record_quiz_completion(
        self, session: QuizSession, result: QuizResult
    ) -> None:
        key = _join(session.session_key)
        row = {
            "user_id": session.user_id,
            "topic": session.topic,
            "difficulty": session.difficulty.value,
            "total_questions": result.total_count,
            "correct_answers": result.correct_count,
            "score": result.score_percent,
            "time_limit_seconds": session.time_limit_seconds,
            "started_at": _isoformat(session.started_at),
            "completed_at": _isoformat(session.completed_at),
        }
        await asyncio.to_thread(self._upsert, "quiz_sessions", key, row)

    async def record_question_attempt(
        self,
        user_id: str,
        question_id: str,
        selected_option: str,
        is_correct: bool,
    ) -> None:
        row = {
            "selected_answer": selected_option,
            "is_correct": bool(is_correct),
            "attempted_at": _now(),
        }
        await asyncio.to_thread(
            self._upsert, "mcq_attempts", _join((user_id, question_id)), row
        )

    async def mark_video_completed(
        self, user_id: str, video_id: str, completed: bool = True
    ) -> None:
        row = {"completed": bool(completed), "updated_at": _now()}
        await asyncio.to_thread(
            self._upsert, "video_progress", _join((user_id, video_id)), row
        )

    async def mark_problem_attempted(
        self, user_id: str, problem_id: str, attempted: bool = True
    ) -> None:
        row = {"attempted": bool(attempted), "updated_at": _now()}
        await asyncio.to_thread(
            self._upsert, "coding_progress", _join((user_id, problem_id)), row
        )

    def _read(self) -> Payload:
        try:
            raw = read_json(self._path) if self._path.exists() else {}
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceFailure(
                f"Failed to read progress file {self._path}: {exc}"
            ) from exc
        if not isinstance(raw, dict):
            raise PersistenceFailure(
                f"Progress file {self._path} must contain a JSON object."
            )
        for table in _TABLES:
            raw.setdefault(table, {})
        return raw

    def _upsert(self, table: str, key: str, row: dict[str, Any]) -> None:
        try:
            with FileLock(self._lock_path):
                payload = self._read()
                payload[table][key] = row
                atomic_write_json(self._path, payload)
        except (OSError, FileLockTimeout) as exc:
            raise PersistenceFailure(
                f"Failed to write progress file {self._path}: {exc}"
            ) from exc


def _join(parts: Iterable[object]) -> str:
    return _KEY_SEPARATOR.join(
        "" if part is None else str(part) for part in parts
    )


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
