"""Shared testing fixtures for the study_tracker test suite."""

from .quiz import (  # noqa: F401
    ManualTimer,
    ManualTimerFactory,
    RecordingProgressStore,
    make_question,
    make_questions,
)
from .workspace import WorkspaceBuilder, mcq_row, write_rows  # noqa: F401

__all__ = [
    "ManualTimer",
    "ManualTimerFactory",
    "RecordingProgressStore",
    "WorkspaceBuilder",
    "make_question",
    "make_questions",
    "mcq_row",
    "write_rows",
]
