from __future__ import annotations

import pytest

from fixtures import RecordingProgressStore, make_question, make_questions
from study_tracker.errors import EmptyQuestionSet, InvalidTransition
from study_tracker.models import Difficulty, SessionStatus
from study_tracker.quiz import QuizSessionController
from study_tracker.stores import InMemoryProgressStore


def _controller(timers, *, count=5, time_limit=300, **kwargs):
    return QuizSessionController.create(
        "sorting",
        Difficulty.BEGINNER,
        make_questions(count),
        time_limit,
        timer_factory=timers,
        **kwargs,
    )


def _answer(controller, *labels):
    for label in labels:
        assert controller.select_answer(label)
        assert controller.advance()


def test_create_rejects_empty_question_set(timers):
    with pytest.raises(EmptyQuestionSet) as excinfo:
        QuizSessionController.create(
            "graphs", "high", [], 300, timer_factory=timers
        )
    assert "graphs" in str(excinfo.value)


def test_create_rejects_non_positive_time_limit(timers):
    with pytest.raises(ValueError):
        _controller(timers, time_limit=0)


def test_start_moves_to_in_progress_and_starts_timer(timers):
    controller = _controller(timers)
    assert controller.status is SessionStatus.NOT_STARTED

    controller.start()

    assert controller.status is SessionStatus.IN_PROGRESS
    assert controller.session.remaining_seconds == 300
    assert controller.session.started_at is not None
    assert controller.timer_running
    assert timers.last.interval == 1.0


def test_start_twice_is_rejected(timers):
    controller = _controller(timers)
    controller.start()
    with pytest.raises(InvalidTransition):
        controller.start()


def test_failed_timer_leaves_session_startable(timers):
    attempts = []

    def flaky_factory(interval, callback):
        attempts.append(interval)
        if len(attempts) == 1:
            raise RuntimeError("no running event loop")
        return timers(interval, callback)

    controller = _controller(flaky_factory)

    with pytest.raises(RuntimeError):
        controller.start()
    assert controller.status is SessionStatus.NOT_STARTED
    assert controller.session.started_at is None
    assert not controller.timer_running

    controller.start()

    assert controller.status is SessionStatus.IN_PROGRESS
    assert controller.timer_running
    assert len(timers.timers) == 1


def test_default_timer_outside_event_loop_does_not_start():
    controller = QuizSessionController.create(
        "sorting", Difficulty.BEGINNER, make_questions(2), 60
    )

    with pytest.raises(RuntimeError):
        controller.start()

    assert controller.status is SessionStatus.NOT_STARTED
    with pytest.raises(InvalidTransition):
        controller.select_answer("A")


def test_select_before_start_is_rejected(timers):
    controller = _controller(timers)
    with pytest.raises(InvalidTransition) as excinfo:
        controller.select_answer("A")
    assert excinfo.value.status == "NotStarted"


def test_last_selection_wins_before_advance(timers):
    controller = _controller(timers, count=2)
    controller.start()

    assert controller.select_answer("B")
    assert controller.select_answer("c")
    assert controller.advance()

    assert controller.session.answers == {"q1": "C"}
    assert controller.session.current_index == 1
    assert controller.session.tentative is None


def test_unknown_label_is_ignored(timers):
    controller = _controller(timers)
    controller.start()
    controller.select_answer("A")

    assert controller.select_answer("Z") is False
    assert controller.session.tentative == "A"


def test_advance_without_selection_is_a_no_op(timers):
    controller = _controller(timers)
    controller.start()

    assert controller.advance() is False
    assert controller.session.current_index == 0
    assert controller.session.answers == {}


def test_answering_last_question_completes(timers):
    results = []
    controller = _controller(timers, count=3, on_complete=results.append)
    controller.start()

    _answer(controller, "A", "B", "A")

    assert controller.status is SessionStatus.COMPLETED
    assert not controller.timer_running
    assert timers.last.cancelled
    result = controller.result
    assert (result.correct_count, result.total_count) == (2, 3)
    assert result.score_percent == 67
    assert result.completion_reason == "finished"
    assert results == [result]


def test_time_expiry_scores_unanswered_as_incorrect(timers):
    controller = _controller(timers, count=5, time_limit=300)
    controller.start()
    _answer(controller, "A", "A", "A", "A")

    timers.last.fire(300)

    assert controller.status is SessionStatus.COMPLETED
    assert controller.session.remaining_seconds == 0
    result = controller.result
    assert result.correct_count == 4
    assert result.total_count == 5
    assert result.score_percent == 80
    assert result.completion_reason == "expired"
    assert result.outcomes[-1].user_answer is None


def test_expiry_counts_the_pending_selection(timers):
    controller = _controller(timers, count=2, time_limit=3)
    controller.start()
    _answer(controller, "B")
    controller.select_answer("A")

    timers.last.fire(3)

    assert controller.session.answers == {"q1": "B", "q2": "A"}
    assert controller.result.correct_count == 1


def test_expiry_and_finish_produce_the_same_result_shape(timers):
    finished = _controller(timers, count=2)
    finished.start()
    _answer(finished, "A", "A")

    expired = _controller(timers, count=2, time_limit=2)
    expired.start()
    _answer(expired, "A")
    expired.select_answer("A")
    timers.last.fire(2)

    first, second = finished.result, expired.result
    assert first.outcomes == second.outcomes
    assert first.score_percent == second.score_percent == 100
    assert {first.completion_reason, second.completion_reason} == {
        "finished",
        "expired",
    }


def test_ticks_count_down_one_second_at_a_time(timers):
    controller = _controller(timers, time_limit=10)
    controller.start()

    timers.last.fire(4)

    assert controller.session.remaining_seconds == 6
    assert controller.status is SessionStatus.IN_PROGRESS


def test_mutations_after_completion_are_rejected(timers):
    controller = _controller(timers, count=1)
    controller.start()
    _answer(controller, "A")

    for call in (
        lambda: controller.select_answer("B"),
        controller.advance,
        controller.tick,
        controller.cancel,
    ):
        with pytest.raises(InvalidTransition):
            call()
    assert controller.result.correct_count == 1


def test_result_is_unavailable_before_completion(timers):
    controller = _controller(timers)
    controller.start()
    with pytest.raises(InvalidTransition):
        controller.result


def test_cancel_stops_timer_and_blocks_further_input(timers):
    store = InMemoryProgressStore()
    controller = _controller(timers, user_id="u1", store=store)
    controller.start()
    controller.select_answer("A")

    controller.cancel()
    controller.cancel()

    assert controller.abandoned
    assert timers.last.cancelled
    assert not controller.timer_running
    with pytest.raises(InvalidTransition) as excinfo:
        controller.select_answer("A")
    assert excinfo.value.status == "Abandoned"
    assert store.mcq_attempts == {}
    assert store.quiz_sessions == {}


def test_timer_fire_after_cancel_does_nothing(timers):
    controller = _controller(timers, time_limit=2)
    controller.start()
    timer = timers.last
    controller.cancel()

    timer.callback()

    assert controller.session.remaining_seconds == 2


@pytest.mark.anyio
async def test_completion_writes_one_batch(timers):
    store = RecordingProgressStore()
    controller = _controller(timers, count=3, user_id="u1", store=store)
    controller.start()
    _answer(controller, "A", "B")
    timers.last.fire(300)

    report = await controller.persisted()
    again = await controller.persisted()

    assert report.ok and report is again
    assert report.attempts_written == 2
    assert [call[0] for call in store.calls] == [
        "record_question_attempt",
        "record_question_attempt",
        "record_quiz_completion",
    ]
    assert store.mcq_attempts[("u1", "q1")]["is_correct"] is True
    assert store.mcq_attempts[("u1", "q2")]["is_correct"] is False
    (row,) = store.quiz_sessions.values()
    assert row["correct_answers"] == 1
    assert row["total_questions"] == 3
    assert row["score"] == 33


@pytest.mark.anyio
async def test_failed_persistence_keeps_result_and_reports_notice(timers):
    store = RecordingProgressStore(fail_on="completion")
    controller = _controller(timers, count=2, user_id="u1", store=store)
    controller.start()
    _answer(controller, "A", "A")

    report = await controller.persisted()

    assert not report.ok
    assert report.attempts_written == 2
    assert "could not be saved" in report.notice
    assert controller.result.score_percent == 100
    assert controller.status is SessionStatus.COMPLETED


@pytest.mark.anyio
async def test_guest_sessions_are_scored_but_not_saved(timers):
    store = RecordingProgressStore()
    controller = _controller(timers, count=1, store=store)
    controller.start()
    _answer(controller, "A")

    report = await controller.persisted()

    assert report.ok and report.skipped
    assert report.notice is None
    assert store.calls == []
    assert controller.result.correct_count == 1


@pytest.mark.anyio
async def test_persisted_before_completion_is_rejected(timers):
    controller = _controller(timers)
    controller.start()
    with pytest.raises(InvalidTransition):
        await controller.persisted()


def test_question_rejects_too_many_options():
    with pytest.raises(ValueError):
        make_question("q1", labels=("A", "B", "C", "D", "E"))


def test_question_rejects_unknown_correct_label():
    with pytest.raises(ValueError):
        make_question("q1", correct="E")
