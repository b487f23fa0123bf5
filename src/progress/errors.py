"""Typed outcomes of the progress and assessment core.

Every failure leaves the core as a ``ProgressError`` carrying a stable ``code``
(used by clients and by the HTTP status map) and a ``category`` telling the
caller whether fixing the request, refreshing state or retrying can help.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Broad error families."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    STORAGE = "storage"


class ProgressError(Exception):
    """Base progress error."""

    def __init__(
        self,
        message: str,
        code: str = "progress_error",
        category: ErrorCategory = ErrorCategory.STORAGE,
    ):
        self.message = message
        self.code = code
        self.category = category
        super().__init__(message)


# ==============================================================================
# Validation
# ==============================================================================


class IncompleteSubmission(ProgressError):
    """A quiz question was left unanswered."""

    def __init__(self, message: str = "Every question must be answered"):
        super().__init__(message, "incomplete_submission", ErrorCategory.VALIDATION)


class InvalidAnswer(ProgressError):
    """Selected option index is outside the question's options."""

    def __init__(self, message: str = "Selected option does not exist"):
        super().__init__(message, "invalid_answer", ErrorCategory.VALIDATION)


class InvalidQuizDefinition(ProgressError):
    """Quiz cannot be graded (no questions or no achievable points)."""

    def __init__(self, message: str = "Quiz has no gradable questions"):
        super().__init__(message, "invalid_quiz_definition", ErrorCategory.VALIDATION)


class InvalidProgressValue(ProgressError):
    """Module progress outside 0-100."""

    def __init__(self, message: str = "Progress must be between 0 and 100"):
        super().__init__(message, "invalid_progress_value", ErrorCategory.VALIDATION)


class ModuleNotFound(ProgressError):
    """Module is not part of the course's current module list."""

    def __init__(self, message: str = "Module not found in course"):
        super().__init__(message, "module_not_found", ErrorCategory.VALIDATION)


# ==============================================================================
# Not found
# ==============================================================================


class CourseNotFound(ProgressError):
    """Course does not exist in the catalog."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found", ErrorCategory.NOT_FOUND)


class QuizNotFound(ProgressError):
    """Module has no quiz attached."""

    def __init__(self, message: str = "Module has no quiz"):
        super().__init__(message, "quiz_not_found", ErrorCategory.NOT_FOUND)


# ==============================================================================
# State conflicts
# ==============================================================================


class AlreadyEnrolled(ProgressError):
    """Student already enrolled in the course."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled", ErrorCategory.CONFLICT)


class NotEnrolled(ProgressError):
    """Student not enrolled in the course."""

    def __init__(self, message: str = "Not enrolled in this course"):
        super().__init__(message, "not_enrolled", ErrorCategory.CONFLICT)


class CourseNotPublished(ProgressError):
    """Course is not open for enrollment."""

    def __init__(self, message: str = "Course is not published"):
        super().__init__(message, "course_not_published", ErrorCategory.CONFLICT)


# ==============================================================================
# Authorization
# ==============================================================================


class NotEligible(ProgressError):
    """Caller's role or identity does not allow the operation."""

    def __init__(self, message: str = "Not allowed for this account"):
        super().__init__(message, "not_eligible", ErrorCategory.AUTHORIZATION)


# ==============================================================================
# Storage
# ==============================================================================


class ProgressWriteConflict(ProgressError):
    """Progress write kept losing to concurrent writers."""

    def __init__(self, message: str = "Progress is busy, please retry"):
        super().__init__(message, "progress_write_conflict", ErrorCategory.STORAGE)
