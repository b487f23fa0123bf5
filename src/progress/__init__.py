"""Enrollment and course progress.

Provides:
- Course enrollment management
- Per-module progress with quiz gating
- Overall course progress aggregation
"""

from .errors import ErrorCategory, ProgressError
from .models import (
    PROGRESS_TABLES_CQL,
    CourseProgress,
    Enrollment,
    ModuleProgress,
    ModuleStatus,
    QuestionOutcome,
    QuizAttempt,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CourseProgress",
    "Enrollment",
    "ErrorCategory",
    "ModuleProgress",
    "ModuleStatus",
    "ProgressError",
    "QuestionOutcome",
    "QuizAttempt",
]
