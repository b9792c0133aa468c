"""Study progress tracking and timed topic quizzes."""

__version__ = "0.1.0"
