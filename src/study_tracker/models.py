"""Shared data model for quiz sessions and topic progress."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

__all__ = [
    "MAX_OPTIONS",
    "Difficulty",
    "ContentKind",
    "SessionStatus",
    "Choice",
    "Question",
    "QuizSession",
    "QuestionOutcome",
    "QuizResult",
    "ContentCounts",
    "CompletionCounts",
    "TopicProgress",
    "round_percent",
]

MAX_OPTIONS = 4
_FLAT_OPTION_FIELDS = ("option_a", "option_b", "option_c", "option_d")

CompletionReason = Literal["finished", "expired"]


class Difficulty(Enum):
    """Quiz tiers offered per topic."""

    BEGINNER = "beginner"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_value(cls, value: "str | Difficulty") -> "Difficulty":
        if isinstance(value, Difficulty):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        expected = ", ".join(member.value for member in cls)
        raise ValueError(
            f"Unknown difficulty '{value}'. Expected one of: {expected}."
        )


class ContentKind(Enum):
    """The three completion signals combined into topic progress."""

    VIDEO = "video"
    MCQ = "mcq"
    PROBLEM = "problem"


class SessionStatus(Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class Choice:
    """Labeled multiple-choice option."""

    label: str
    text: str


@dataclass(frozen=True)
class Question:
    """Immutable multiple-choice question loaded into a session."""

    id: str
    text: str
    options: tuple[Choice, ...]
    correct_option_label: str
    difficulty: Difficulty
    explanation: str | None = None
    topic: str | None = None

    def __post_init__(self) -> None:
        labels = [choice.label for choice in self.options]
        if not 2 <= len(labels) <= MAX_OPTIONS:
            raise ValueError(
                f"Question {self.id!r} must have 2-{MAX_OPTIONS} options."
            )
        if len(set(labels)) != len(labels):
            raise ValueError(f"Question {self.id!r} has duplicate labels.")
        if self.correct_option_label not in labels:
            raise ValueError(
                f"Question {self.id!r}: correct option "
                f"{self.correct_option_label!r} is not among {labels}."
            )

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(choice.label for choice in self.options)

    def choice_for(self, label: str | None) -> Choice | None:
        if not label:
            return None
        normalized = normalize_label(label)
        for choice in self.options:
            if choice.label == normalized:
                return choice
        return None

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        topic: str | None = None,
    ) -> "Question":
        """Build a question from a content row.

        Accepts ``choices: [{key, text}, ...]`` or the flat
        ``option_a``..``option_d`` columns. Raises ``ValueError`` on invalid
        rows.
        """

        identifier = data.get("id")
        if identifier is None or not str(identifier).strip():
            raise ValueError("question id is required")
        text = str(data.get("question", data.get("stem", ""))).strip()
        if not text:
            raise ValueError(f"question {identifier!r} has no text")
        answer = normalize_label(
            str(data.get("correct_answer", data.get("answer", "")))
        )
        explanation = data.get("explanation")
        return cls(
            id=str(identifier),
            text=text,
            options=tuple(_iter_choices(data)),
            correct_option_label=answer,
            difficulty=Difficulty.from_value(
                data.get("difficulty", Difficulty.BEGINNER.value)
            ),
            explanation=str(explanation) if explanation else None,
            topic=str(data.get("topic", topic or "")) or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.text,
            "choices": [
                {"key": choice.label, "text": choice.text}
                for choice in self.options
            ],
            "correct_answer": self.correct_option_label,
            "explanation": self.explanation,
            "difficulty": self.difficulty.value,
            "topic": self.topic,
        }


def normalize_label(value: str) -> str:
    return str(value).strip().upper()[:1]


def _iter_choices(data: Mapping[str, Any]) -> Iterable[Choice]:
    raw = data.get("choices")
    if raw is None:
        # Each column keeps its own letter even when an earlier one is blank.
        raw = [
            {"key": name[-1], "text": data[name]}
            for name in _FLAT_OPTION_FIELDS
            if data.get(name) not in (None, "")
        ]
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise ValueError("choices must be a list")
    normalized: list[Choice] = []
    for item in raw:
        if isinstance(item, Mapping):
            label = normalize_label(str(item.get("key", "")))
            text = str(item.get("text", "")).strip()
        else:
            label = ""
            text = str(item).strip()
        if not label:
            label = chr(ord("A") + len(normalized))
        if not text:
            raise ValueError("choice text must be non-empty")
        normalized.append(Choice(label, text))
    return normalized


@dataclass
class QuizSession:
    """State of one quiz attempt, owned by a single controller."""

    topic: str
    difficulty: Difficulty
    questions: tuple[Question, ...]
    time_limit_seconds: int
    user_id: str | None = None
    current_index: int = 0
    answers: dict[str, str] = field(default_factory=dict)
    tentative: str | None = None
    status: SessionStatus = SessionStatus.NOT_STARTED
    remaining_seconds: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.questions = tuple(self.questions)
        if not self.remaining_seconds:
            self.remaining_seconds = self.time_limit_seconds

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index == len(self.questions) - 1

    @property
    def session_key(self) -> tuple[str | None, str, str, str | None]:
        """Identity used to upsert the completion summary."""

        started = self.started_at.isoformat() if self.started_at else None
        return (self.user_id, self.topic, self.difficulty.value, started)


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: str
    user_answer: str | None
    correct: bool


@dataclass(frozen=True)
class QuizResult:
    """Scored outcome of a completed session."""

    correct_count: int
    total_count: int
    score_percent: int
    outcomes: tuple[QuestionOutcome, ...]
    completion_reason: CompletionReason = "finished"

    @property
    def answered_count(self) -> int:
        return sum(1 for item in self.outcomes if item.user_answer is not None)


@dataclass(frozen=True)
class ContentCounts:
    """Content ids available for a topic, one set per completion signal."""

    video_ids: frozenset[str] = frozenset()
    mcq_ids: frozenset[str] = frozenset()
    problem_ids: frozenset[str] = frozenset()
    warnings: tuple[str, ...] = ()

    def ids_for(self, kind: ContentKind) -> frozenset[str]:
        if kind is ContentKind.VIDEO:
            return self.video_ids
        if kind is ContentKind.MCQ:
            return self.mcq_ids
        return self.problem_ids

    @property
    def total(self) -> int:
        return len(self.video_ids) + len(self.mcq_ids) + len(self.problem_ids)


@dataclass(frozen=True)
class CompletionCounts:
    """Ids a user has completed or attempted, restricted to a topic."""

    completed_video_ids: frozenset[str] = frozenset()
    attempted_mcq_ids: frozenset[str] = frozenset()
    attempted_problem_ids: frozenset[str] = frozenset()
    warnings: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return (
            len(self.completed_video_ids)
            + len(self.attempted_mcq_ids)
            + len(self.attempted_problem_ids)
        )


@dataclass(frozen=True)
class TopicProgress:
    topic_id: str
    total_items: int
    completed_items: int
    percentage: int
    warnings: tuple[str, ...] = ()

    @classmethod
    def from_counts(
        cls,
        topic_id: str,
        content: ContentCounts,
        completion: CompletionCounts,
    ) -> "TopicProgress":
        total = content.total
        completed = min(completion.total, total)
        return cls(
            topic_id=topic_id,
            total_items=total,
            completed_items=completed,
            percentage=round_percent(completed, total),
            warnings=content.warnings + completion.warnings,
        )

    @classmethod
    def empty(
        cls, topic_id: str, *, warnings: tuple[str, ...] = ()
    ) -> "TopicProgress":
        return cls(topic_id, 0, 0, 0, warnings)


def round_percent(part: int, whole: int) -> int:
    """Return ``100 * part / whole`` rounded half up, 0 for an empty whole."""

    if whole <= 0:
        return 0
    part = max(0, min(part, whole))
    return (200 * part + whole) // (2 * whole)
