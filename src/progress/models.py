"""Database models for enrollment and course progress.

Cassandra table definitions for:
- Enrollments: one row per (student, course), created with a lightweight
  transaction so concurrent enrolls cannot both win
- Lookup tables: courses per student, students per course
- Course progress: per-module state embedded as a JSON document, guarded by a
  compare-and-set version column
- Quiz attempts: append-only, one row per graded submission
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import orjson


class ModuleStatus(str, Enum):
    """Module progress status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Forward-only: completion is never revoked here
MODULE_STATUS_TRANSITIONS: dict[ModuleStatus, frozenset[ModuleStatus]] = {
    ModuleStatus.NOT_STARTED: frozenset(
        {ModuleStatus.NOT_STARTED, ModuleStatus.IN_PROGRESS, ModuleStatus.COMPLETED}
    ),
    ModuleStatus.IN_PROGRESS: frozenset(
        {ModuleStatus.IN_PROGRESS, ModuleStatus.COMPLETED}
    ),
    ModuleStatus.COMPLETED: frozenset({ModuleStatus.COMPLETED}),
}


def can_transition(current: ModuleStatus, target: ModuleStatus) -> bool:
    """Check the transition table.

    Examples:
        >>> can_transition(ModuleStatus.IN_PROGRESS, ModuleStatus.COMPLETED)
        True
        >>> can_transition(ModuleStatus.COMPLETED, ModuleStatus.IN_PROGRESS)
        False
    """
    return target in MODULE_STATUS_TRANSITIONS[current]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return ensure_utc_aware(datetime.fromisoformat(value))


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition per (student, course); INSERT ... IF NOT EXISTS enforces uniqueness
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    enrolled_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    completed_at TIMESTAMP,
    certificate_issued BOOLEAN,
    PRIMARY KEY ((user_id, course_id))
)
"""

# Lookup: courses per student, newest first
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    course_id UUID,
    PRIMARY KEY (user_id, enrolled_at, course_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, course_id ASC)
"""

# Lookup: enrolled students per course
COURSE_STUDENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_students (
    course_id UUID,
    user_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# modules holds the ordered per-module state as JSON; version is the CAS token
COURSE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_progress (
    user_id UUID,
    course_id UUID,
    modules TEXT,
    overall_progress DECIMAL,
    last_accessed_at TIMESTAMP,
    completed_at TIMESTAMP,
    version INT,
    PRIMARY KEY ((user_id, course_id))
)
"""

# attempt_id is a time-based UUID so clustering order is submission order
QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    user_id UUID,
    course_id UUID,
    module_id UUID,
    attempt_id TIMEUUID,
    quiz_id UUID,
    score DECIMAL,
    passed BOOLEAN,
    submitted_at TIMESTAMP,
    outcomes TEXT,
    PRIMARY KEY ((user_id, course_id), module_id, attempt_id)
) WITH CLUSTERING ORDER BY (module_id ASC, attempt_id ASC)
"""

# All CQL statements for table setup
PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    COURSE_STUDENTS_TABLE_CQL,
    COURSE_PROGRESS_TABLE_CQL,
    QUIZ_ATTEMPTS_TABLE_CQL,
]


# ==============================================================================
# Embedded Values
# ==============================================================================


@dataclass(frozen=True)
class QuestionOutcome:
    """Result of one question in a graded attempt."""

    question_index: int
    selected_index: int
    is_correct: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_index": self.question_index,
            "selected_index": self.selected_index,
            "is_correct": self.is_correct,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuestionOutcome":
        return cls(
            question_index=int(data["question_index"]),
            selected_index=int(data["selected_index"]),
            is_correct=bool(data["is_correct"]),
        )


@dataclass
class QuizAttempt:
    """One graded submission of a module's quiz.

    Attributes:
        attempt_id: Time-based UUID (orders attempts by submission)
        quiz_id: Quiz UUID
        module_id: Module the quiz belongs to
        score: Percentage 0-100, one decimal place
        passed: score >= quiz passing score
        submitted_at: Server receive time
        outcomes: Per-question results in question order
    """

    attempt_id: UUID
    quiz_id: UUID
    module_id: UUID
    score: Decimal
    passed: bool
    submitted_at: datetime
    outcomes: list[QuestionOutcome] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        raw_outcomes = orjson.loads(row.outcomes) if row.outcomes else []
        return cls(
            attempt_id=row.attempt_id,
            quiz_id=row.quiz_id,
            module_id=row.module_id,
            score=row.score if row.score is not None else Decimal(0),
            passed=bool(row.passed),
            submitted_at=ensure_utc_aware(row.submitted_at),
            outcomes=[QuestionOutcome.from_dict(o) for o in raw_outcomes],
        )

    def outcomes_json(self) -> str:
        return orjson.dumps([o.to_dict() for o in self.outcomes]).decode()

    def __repr__(self) -> str:
        return (
            f"<QuizAttempt module={self.module_id} score={self.score} "
            f"passed={self.passed}>"
        )


@dataclass
class ModuleProgress:
    """Per-module state inside a CourseProgress.

    quiz_attempts is loaded from the quiz_attempts table, never from the
    embedded JSON document.
    """

    module_id: UUID
    status: ModuleStatus = ModuleStatus.NOT_STARTED
    progress: Decimal = Decimal(0)
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    quiz_attempts: list[QuizAttempt] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status is ModuleStatus.COMPLETED

    @property
    def has_passing_attempt(self) -> bool:
        return any(a.passed for a in self.quiz_attempts)

    def to_document(self) -> dict[str, Any]:
        """Entry of the embedded modules JSON document."""
        return {
            "module_id": str(self.module_id),
            "status": self.status.value,
            "progress": str(self.progress),
            "last_accessed_at": (
                self.last_accessed_at.isoformat() if self.last_accessed_at else None
            ),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "ModuleProgress":
        return cls(
            module_id=UUID(data["module_id"]),
            status=ModuleStatus(data.get("status", ModuleStatus.NOT_STARTED.value)),
            progress=Decimal(data.get("progress") or 0),
            last_accessed_at=_parse_datetime(data.get("last_accessed_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
        )


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        user_id: Student UUID
        course_id: Course UUID
        enrolled_at: Enrollment timestamp
        last_accessed_at: Last progress-affecting action
        completed_at: Set when the course progress first reaches 100
        certificate_issued: Stored only; never set by this service
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        enrolled_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
        completed_at: datetime | None = None,
        certificate_issued: bool = False,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at) or self.enrolled_at
        self.completed_at = ensure_utc_aware(completed_at)
        self.certificate_issued = certificate_issued

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            enrolled_at=row.enrolled_at,
            last_accessed_at=row.last_accessed_at,
            completed_at=row.completed_at,
            certificate_issued=bool(row.certificate_issued),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "enrolled_at": self.enrolled_at,
            "last_accessed_at": self.last_accessed_at,
            "completed_at": self.completed_at,
            "certificate_issued": self.certificate_issued,
        }

    def __repr__(self) -> str:
        return f"<Enrollment user={self.user_id} course={self.course_id}>"


class CourseProgress:
    """One student's progress through one course.

    Attributes:
        user_id: Student UUID
        course_id: Course UUID
        modules: Per-module state in course order
        overall_progress: Completed modules / total modules x 100 (derived)
        last_accessed_at: Last progress-affecting action
        completed_at: First time overall_progress reached 100
        version: Compare-and-set token, bumped on every write
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        modules: list[ModuleProgress] | None = None,
        overall_progress: Decimal = Decimal(0),
        last_accessed_at: datetime | None = None,
        completed_at: datetime | None = None,
        version: int = 0,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.modules = modules or []
        self.overall_progress = overall_progress
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.version = version

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def module(self, module_id: UUID) -> ModuleProgress | None:
        """Find the entry for a module."""
        for entry in self.modules:
            if entry.module_id == module_id:
                return entry
        return None

    def modules_json(self) -> str:
        return orjson.dumps([m.to_document() for m in self.modules]).decode()

    @classmethod
    def from_row(cls, row: Any) -> "CourseProgress":
        """Create CourseProgress instance from Cassandra row."""
        raw_modules = orjson.loads(row.modules) if row.modules else []
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            modules=[ModuleProgress.from_document(m) for m in raw_modules],
            overall_progress=(
                row.overall_progress
                if row.overall_progress is not None
                else Decimal(0)
            ),
            last_accessed_at=row.last_accessed_at,
            completed_at=row.completed_at,
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "modules": [m.to_document() for m in self.modules],
            "overall_progress": self.overall_progress,
            "last_accessed_at": self.last_accessed_at,
            "completed_at": self.completed_at,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<CourseProgress user={self.user_id} course={self.course_id} "
            f"{self.overall_progress}% v{self.version}>"
        )
