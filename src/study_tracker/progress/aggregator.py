"""Per-topic completion percentages from three completion signals."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Callable, Optional

from ..models import TopicProgress
from ..repository import ContentRepository, ProgressStore

__all__ = ["ProgressAggregator"]

Clock = Callable[[], float]
CacheKey = tuple[str, Optional[str]]


class ProgressAggregator:
    """Compute :class:`TopicProgress` values on demand.

    The only state kept is a short-lived cache of recent results keyed by
    ``(topic_id, user_id)``; a ``cache_ttl`` of ``0`` disables it.
    """

    def __init__(
        self,
        content: ContentRepository,
        store: ProgressStore,
        *,
        cache_ttl: float = 30.0,
        clock: Clock = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._content = content
        self._store = store
        self._cache_ttl = max(0.0, float(cache_ttl))
        self._clock = clock
        self._logger = logger or logging.getLogger("study_tracker.progress")
        self._cache: dict[CacheKey, tuple[float, TopicProgress]] = {}

    async def compute_topic_progress(
        self, topic_id: str, user_id: str | None
    ) -> TopicProgress:
        cached = self._cached(topic_id, user_id)
        if cached is not None:
            return cached

        try:
            progress = await self._fetch(topic_id, user_id)
        except Exception as exc:
            self._logger.warning(
                "Topic progress failed; reporting 0%",
                extra={"topic": topic_id, "error": str(exc)},
            )
            return TopicProgress.empty(
                topic_id,
                warnings=(f"Progress for '{topic_id}' is unavailable: {exc}",),
            )

        self._logger.debug(
            "Computed topic progress",
            extra={
                "topic": topic_id,
                "total_items": progress.total_items,
                "completed_items": progress.completed_items,
                "percentage": progress.percentage,
                "warning_count": len(progress.warnings),
            },
        )
        if not progress.warnings:
            self._remember(topic_id, user_id, progress)
        return progress

    async def compute_all_topics_progress(
        self, topic_ids: Iterable[str], user_id: str | None
    ) -> dict[str, TopicProgress]:
        """Compute every topic concurrently; a failing topic reads as 0%."""

        topics = list(dict.fromkeys(topic_ids))
        results = await asyncio.gather(
            *(self.compute_topic_progress(topic, user_id) for topic in topics)
        )
        return dict(zip(topics, results))

    async def _fetch(
        self, topic_id: str, user_id: str | None
    ) -> TopicProgress:
        content = await self._content.list_content_ids(topic_id)
        if user_id is None:
            return TopicProgress(
                topic_id=topic_id,
                total_items=content.total,
                completed_items=0,
                percentage=0,
                warnings=content.warnings,
            )
        completion = await self._store.get_completion_counts(
            topic_id, user_id, content
        )
        return TopicProgress.from_counts(topic_id, content, completion)

    def invalidate(self, topic_id: str | None = None) -> None:
        """Forget cached results for ``topic_id`` (or every topic)."""

        if topic_id is None:
            self._cache.clear()
            return
        for key in [key for key in self._cache if key[0] == topic_id]:
            del self._cache[key]

    def _cached(
        self, topic_id: str, user_id: str | None
    ) -> TopicProgress | None:
        if not self._cache_ttl:
            return None
        entry = self._cache.get((topic_id, user_id))
        if entry is None:
            return None
        stored_at, progress = entry
        if self._clock() - stored_at > self._cache_ttl:
            del self._cache[(topic_id, user_id)]
            return None
        return progress

    def _remember(
        self, topic_id: str, user_id: str | None, progress: TopicProgress
    ) -> None:
        if not self._cache_ttl:
            return
        now = self._clock()
        expired = [
            key
            for key, (stored_at, _) in self._cache.items()
            if now - stored_at > self._cache_ttl
        ]
        for key in expired:
            del self._cache[key]
        self._cache[(topic_id, user_id)] = (now, progress)
