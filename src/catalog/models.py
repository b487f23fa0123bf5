"""Read-only catalog entities.

Courses, their ordered modules and the quiz attached to a module are authored
by the course management service. This service only reads them; the CQL below
mirrors that service's schema so development clusters can be bootstrapped.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import orjson


# Defaults applied by the authoring service when a quiz omits them
DEFAULT_QUESTION_POINTS = 1
DEFAULT_TIME_LIMIT_MINUTES = 30
DEFAULT_PASSING_SCORE = 70


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    instructor_id UUID,
    published BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Ordered module list per course; position is the display order
COURSE_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
    course_id UUID,
    position INT,
    module_id UUID,
    title TEXT,
    content_type TEXT,
    PRIMARY KEY (course_id, position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

# One quiz per module; questions is a JSON array
MODULE_QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_quizzes (
    module_id UUID PRIMARY KEY,
    quiz_id UUID,
    title TEXT,
    questions TEXT,
    time_limit_minutes INT,
    passing_score INT
)
"""

CATALOG_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_MODULES_TABLE_CQL,
    MODULE_QUIZZES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Course:
    """Course header as seen by the progress core."""

    id: UUID
    title: str
    instructor_id: UUID | None
    published: bool = False

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            instructor_id=row.instructor_id,
            published=bool(row.published),
        )


@dataclass
class CourseModule:
    """One unit of course content (text, video or PDF)."""

    id: UUID
    course_id: UUID
    position: int
    title: str = ""
    content_type: str = "text"

    @classmethod
    def from_row(cls, row: Any) -> "CourseModule":
        """Create from Cassandra row."""
        return cls(
            id=row.module_id,
            course_id=row.course_id,
            position=row.position,
            title=row.title or "",
            content_type=row.content_type or "text",
        )


@dataclass
class QuizQuestion:
    """Multiple-choice question; correct_index points into options."""

    prompt: str
    options: list[str]
    correct_index: int
    points: int = DEFAULT_QUESTION_POINTS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizQuestion":
        points = data.get("points")
        return cls(
            prompt=data.get("question", ""),
            options=list(data.get("options") or []),
            correct_index=int(data["correct_answer"]),
            points=DEFAULT_QUESTION_POINTS if points is None else int(points),
        )

    def to_dict(self, include_answer: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "question": self.prompt,
            "options": self.options,
            "points": self.points,
        }
        if include_answer:
            data["correct_answer"] = self.correct_index
        return data


@dataclass
class QuizDefinition:
    """Quiz attached to a module.

    Attributes:
        id: Quiz UUID
        module_id: Module the quiz gates
        title: Display title
        questions: Ordered questions
        time_limit_minutes: Client-side countdown; never enforced on grading
        passing_score: Minimum percentage (0-100) for a passing attempt
    """

    id: UUID
    module_id: UUID
    title: str = ""
    questions: list[QuizQuestion] = field(default_factory=list)
    time_limit_minutes: int = DEFAULT_TIME_LIMIT_MINUTES
    passing_score: int = DEFAULT_PASSING_SCORE

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @classmethod
    def from_row(cls, row: Any) -> "QuizDefinition":
        """Create from Cassandra row."""
        raw_questions = orjson.loads(row.questions) if row.questions else []
        return cls(
            id=row.quiz_id,
            module_id=row.module_id,
            title=row.title or "",
            questions=[QuizQuestion.from_dict(q) for q in raw_questions],
            time_limit_minutes=(
                row.time_limit_minutes
                if row.time_limit_minutes is not None
                else DEFAULT_TIME_LIMIT_MINUTES
            ),
            passing_score=(
                row.passing_score
                if row.passing_score is not None
                else DEFAULT_PASSING_SCORE
            ),
        )

    def __repr__(self) -> str:
        return (
            f"<QuizDefinition id={self.id} module={self.module_id} "
            f"questions={len(self.questions)} pass>={self.passing_score}>"
        )
