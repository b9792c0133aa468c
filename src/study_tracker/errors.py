"""Exceptions raised by the quiz engine and progress aggregation."""

from __future__ import annotations

__all__ = [
    "TrackerError",
    "EmptyQuestionSet",
    "InvalidTransition",
    "PersistenceFailure",
    "TransportFailure",
]


class TrackerError(RuntimeError):
    """Base class for study-tracker errors."""


class EmptyQuestionSet(TrackerError):
    """Raised when a quiz is requested for a topic/difficulty with no questions."""

    def __init__(self, topic: str, difficulty: str) -> None:
        super().__init__(
            f"No {difficulty} questions are available for topic '{topic}'."
        )
        self.topic = topic
        self.difficulty = difficulty


class InvalidTransition(TrackerError):
    """Raised when a session operation is not allowed in its current state."""

    def __init__(self, operation: str, status: str) -> None:
        super().__init__(f"Cannot {operation} while session is {status}.")
        self.operation = operation
        self.status = status


class PersistenceFailure(TrackerError):
    """Raised by a progress store when a read or write fails."""


class TransportFailure(TrackerError):
    """Raised when a content or progress collaborator cannot be reached."""
