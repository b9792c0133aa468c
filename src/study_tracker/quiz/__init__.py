from .controller import PersistenceReport, QuizSessionController
from .scoring import (
    AttemptRecord,
    CompletionBatch,
    build_completion_batch,
    score_session,
)
from .timer import AsyncioRepeatingTimer, RepeatingTimer, TimerFactory

__all__ = [
    "PersistenceReport",
    "QuizSessionController",
    "AttemptRecord",
    "CompletionBatch",
    "build_completion_batch",
    "score_session",
    "AsyncioRepeatingTimer",
    "RepeatingTimer",
    "TimerFactory",
]
