from __future__ import annotations

import pytest

from fixtures import RecordingProgressStore, make_question
from study_tracker.errors import PersistenceFailure, TransportFailure
from study_tracker.models import ContentCounts, ContentKind
from study_tracker.progress import ProgressAggregator
from study_tracker.stores import InMemoryContentRepository

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FlakyContentRepository(InMemoryContentRepository):
    def __init__(self, *, failing_kind=None, failing_topic=None) -> None:
        super().__init__()
        self.failing_kind = failing_kind
        self.failing_topic = failing_topic

    async def list_ids(self, topic, kind):
        if kind is self.failing_kind:
            raise TransportFailure(f"{kind.value} listing timed out")
        return await super().list_ids(topic, kind)

    async def list_content_ids(self, topic) -> ContentCounts:
        if topic == self.failing_topic:
            raise TransportFailure("content service unreachable")
        return await super().list_content_ids(topic)


def _arrays_content(repo):
    repo.add_content("arrays", ContentKind.VIDEO, "v1", "v2")
    for qid in ("q1", "q2", "q3"):
        repo.add_question("arrays", make_question(qid, topic="arrays"))
    repo.add_content("arrays", ContentKind.PROBLEM, "p1")
    return repo


async def _attempt(store, user_id, *question_ids):
    for qid in question_ids:
        await store.record_question_attempt(user_id, qid, "A", True)


async def test_combines_three_signals_into_percentage():
    repo = _arrays_content(InMemoryContentRepository())
    store = RecordingProgressStore()
    store.mark_video_completed("u1", "v1")
    await _attempt(store, "u1", "q1", "q2")
    aggregator = ProgressAggregator(repo, store)

    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert progress.total_items == 6
    assert progress.completed_items == 3
    assert progress.percentage == 50
    assert progress.warnings == ()


async def test_only_flagged_items_of_the_topic_count():
    repo = _arrays_content(InMemoryContentRepository())
    repo.add_content("graphs", ContentKind.VIDEO, "g1")
    store = RecordingProgressStore()
    store.mark_video_completed("u1", "v2", completed=False)
    store.mark_video_completed("u1", "g1")
    store.mark_problem_attempted("u1", "p1")
    store.mark_problem_attempted("u2", "p1")
    aggregator = ProgressAggregator(repo, store)

    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert progress.completed_items == 1
    assert progress.percentage == 17


async def test_guest_gets_zero_without_completion_lookup():
    repo = _arrays_content(InMemoryContentRepository())
    store = RecordingProgressStore()
    aggregator = ProgressAggregator(repo, store)

    progress = await aggregator.compute_topic_progress("arrays", None)

    assert progress.percentage == 0
    assert progress.completed_items == 0
    assert progress.total_items == 6
    assert store.calls == []


async def test_topic_without_content_is_zero_percent():
    aggregator = ProgressAggregator(
        InMemoryContentRepository(), RecordingProgressStore()
    )

    progress = await aggregator.compute_topic_progress("trees", "u1")

    assert (progress.total_items, progress.percentage) == (0, 0)


async def test_failed_content_signal_degrades_to_empty_with_warning():
    repo = _arrays_content(
        FlakyContentRepository(failing_kind=ContentKind.VIDEO)
    )
    store = RecordingProgressStore()
    store.mark_video_completed("u1", "v1")
    await _attempt(store, "u1", "q1")
    aggregator = ProgressAggregator(repo, store)

    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert progress.total_items == 4
    assert progress.completed_items == 1
    assert progress.percentage == 25
    assert len(progress.warnings) == 1
    assert "video" in progress.warnings[0]


async def test_failed_completion_signal_degrades_to_empty_with_warning():
    repo = _arrays_content(InMemoryContentRepository())
    store = RecordingProgressStore(fail_on="mcq")
    store.mark_video_completed("u1", "v1")
    await _attempt(store, "u1", "q1", "q2", "q3")
    aggregator = ProgressAggregator(repo, store)

    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert progress.total_items == 6
    assert progress.completed_items == 1
    assert progress.percentage == 17
    assert any("mcq" in warning for warning in progress.warnings)


async def test_all_topics_isolates_failures():
    repo = _arrays_content(FlakyContentRepository(failing_topic="graphs"))
    store = RecordingProgressStore()
    await _attempt(store, "u1", "q1", "q2", "q3")
    aggregator = ProgressAggregator(repo, store)

    progress = await aggregator.compute_all_topics_progress(
        ["arrays", "graphs", "arrays"], "u1"
    )

    assert list(progress) == ["arrays", "graphs"]
    assert progress["arrays"].percentage == 50
    assert progress["graphs"].percentage == 0
    assert progress["graphs"].total_items == 0
    assert "unavailable" in progress["graphs"].warnings[0]


async def test_results_are_cached_until_ttl_expires():
    repo = _arrays_content(InMemoryContentRepository())
    store = RecordingProgressStore()
    clock = FakeClock()
    aggregator = ProgressAggregator(repo, store, cache_ttl=30, clock=clock)

    first = await aggregator.compute_topic_progress("arrays", "u1")
    await _attempt(store, "u1", "q1", "q2", "q3")
    clock.now += 10
    cached = await aggregator.compute_topic_progress("arrays", "u1")
    clock.now += 30
    fresh = await aggregator.compute_topic_progress("arrays", "u1")

    assert first.percentage == cached.percentage == 0
    assert fresh.percentage == 50


async def test_invalidate_forces_recompute():
    repo = _arrays_content(InMemoryContentRepository())
    store = RecordingProgressStore()
    aggregator = ProgressAggregator(repo, store, cache_ttl=30)

    await aggregator.compute_topic_progress("arrays", "u1")
    store.mark_problem_attempted("u1", "p1")
    aggregator.invalidate("arrays")
    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert progress.completed_items == 1


async def test_results_with_warnings_are_not_cached():
    repo = _arrays_content(InMemoryContentRepository())
    store = RecordingProgressStore(fail_on="video")
    aggregator = ProgressAggregator(repo, store, cache_ttl=30)

    degraded = await aggregator.compute_topic_progress("arrays", "u1")
    store.fail_on = None
    store.mark_video_completed("u1", "v1")
    recovered = await aggregator.compute_topic_progress("arrays", "u1")

    assert degraded.warnings
    assert recovered.warnings == ()
    assert recovered.completed_items == 1


class UnreachableStore(RecordingProgressStore):
    async def get_completion_counts(self, topic, user_id, content):
        raise PersistenceFailure("progress database offline")


async def test_single_topic_content_failure_reads_as_zero():
    repo = _arrays_content(FlakyContentRepository(failing_topic="arrays"))
    store = RecordingProgressStore()
    await _attempt(store, "u1", "q1")
    aggregator = ProgressAggregator(repo, store, cache_ttl=30)

    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert (progress.total_items, progress.percentage) == (0, 0)
    assert "unavailable" in progress.warnings[0]
    assert "content service unreachable" in progress.warnings[0]
    assert aggregator._cache == {}


async def test_single_topic_completion_failure_reads_as_zero():
    repo = _arrays_content(InMemoryContentRepository())
    aggregator = ProgressAggregator(repo, UnreachableStore())

    progress = await aggregator.compute_topic_progress("arrays", "u1")

    assert progress.percentage == 0
    assert progress.completed_items == 0
    assert "progress database offline" in progress.warnings[0]


async def test_expired_entries_are_dropped_when_caching():
    repo = _arrays_content(InMemoryContentRepository())
    clock = FakeClock()
    aggregator = ProgressAggregator(
        repo, RecordingProgressStore(), cache_ttl=30, clock=clock
    )

    for user in ("u1", "u2", "u3"):
        await aggregator.compute_topic_progress("arrays", user)
    assert len(aggregator._cache) == 3

    clock.now += 31
    await aggregator.compute_topic_progress("arrays", "u4")

    assert list(aggregator._cache) == [("arrays", "u4")]
