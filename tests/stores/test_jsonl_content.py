from __future__ import annotations

import pytest

from fixtures import mcq_row
from study_tracker.errors import TransportFailure
from study_tracker.models import ContentKind, Difficulty
from study_tracker.stores import JsonlContentRepository

pytestmark = pytest.mark.anyio


async def test_list_questions_reads_flat_option_columns(workspace):
    workspace.add_content(
        ContentKind.MCQ,
        [
            mcq_row("q1", answer="c", explanation="Because."),
            mcq_row("q2", difficulty="high"),
            mcq_row("q3", topic="graphs"),
            mcq_row("q4", answer="B"),
        ],
    )
    repo = JsonlContentRepository(workspace.content_dir)

    questions = await repo.list_questions("sorting", Difficulty.BEGINNER)

    assert [q.id for q in questions] == ["q1", "q4"]
    first = questions[0]
    assert first.labels == ("A", "B", "C", "D")
    assert first.correct_option_label == "C"
    assert first.choice_for("c").text == "third"
    assert first.explanation == "Because."
    assert first.topic == "sorting"


async def test_blank_option_column_keeps_later_letters(workspace):
    row = mcq_row("q1", answer="C")
    row.update(option_a="alpha", option_b="", option_c="gamma")
    row["option_d"] = "delta"
    workspace.add_content(ContentKind.MCQ, [row])
    repo = JsonlContentRepository(workspace.content_dir)

    (question,) = await repo.list_questions("sorting", Difficulty.BEGINNER)

    assert question.labels == ("A", "C", "D")
    assert question.choice_for("C").text == "gamma"
    assert question.choice_for("B") is None
    assert question.correct_option_label == "C"


async def test_invalid_rows_are_skipped(workspace):
    broken = mcq_row("bad", answer="E")
    workspace.add_content(ContentKind.MCQ, [broken, mcq_row("ok")])
    repo = JsonlContentRepository(workspace.content_dir)

    questions = await repo.list_questions("sorting", Difficulty.BEGINNER)

    assert [q.id for q in questions] == ["ok"]


async def test_missing_files_mean_no_content(workspace):
    repo = JsonlContentRepository(workspace.content_dir)

    counts = await repo.list_content_ids("sorting")
    questions = await repo.list_questions("sorting", Difficulty.MEDIUM)

    assert counts.total == 0
    assert counts.warnings == ()
    assert questions == []


async def test_list_content_ids_groups_by_kind(workspace):
    workspace.add_ids(ContentKind.VIDEO, "arrays", "v1", "v2")
    workspace.add_ids(ContentKind.PROBLEM, "arrays", "p1")
    workspace.add_content(
        ContentKind.MCQ,
        [mcq_row("q1", topic="arrays"), mcq_row("q2", topic="trees")],
    )
    repo = JsonlContentRepository(workspace.content_dir)

    counts = await repo.list_content_ids("arrays")

    assert counts.video_ids == frozenset({"v1", "v2"})
    assert counts.mcq_ids == frozenset({"q1"})
    assert counts.problem_ids == frozenset({"p1"})
    assert counts.total == 4


async def test_corrupt_file_raises_transport_failure(workspace):
    workspace.write(
        "content/videos.jsonl", '{"id": "v1", "topic": "x"}\n{oops\n'
    )
    repo = JsonlContentRepository(workspace.content_dir)

    with pytest.raises(TransportFailure) as excinfo:
        await repo.list_ids("x", ContentKind.VIDEO)
    assert "videos.jsonl:2" in str(excinfo.value)

    counts = await repo.list_content_ids("x")
    assert counts.video_ids == frozenset()
    assert len(counts.warnings) == 1
