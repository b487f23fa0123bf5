"""Read-only catalog lookups.

Business logic for:
- Course header lookup (publish state, owning instructor)
- Ordered module list of a course
- Quiz attached to a module
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from src.catalog.models import Course, CourseModule, QuizDefinition


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CatalogReader(Protocol):
    """What the progress core needs from the course catalog."""

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def get_course_modules(self, course_id: UUID) -> list[CourseModule]: ...

    async def get_module_quiz(self, module_id: UUID) -> QuizDefinition | None: ...


class CatalogService:
    """Cassandra-backed catalog reader."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course = self.session.prepare(f"""
            SELECT id, title, instructor_id, published
            FROM {self.keyspace}.courses
            WHERE id = ?
        """)

        self._get_course_modules = self.session.prepare(f"""
            SELECT course_id, position, module_id, title, content_type
            FROM {self.keyspace}.course_modules
            WHERE course_id = ?
        """)

        self._get_module_quiz = self.session.prepare(f"""
            SELECT module_id, quiz_id, title, questions,
                   time_limit_minutes, passing_score
            FROM {self.keyspace}.module_quizzes
            WHERE module_id = ?
        """)

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course header by ID."""
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def get_course_modules(self, course_id: UUID) -> list[CourseModule]:
        """Get the course's modules in display order."""
        rows = await self.session.aexecute(self._get_course_modules, [course_id])
        return [CourseModule.from_row(row) for row in rows]

    async def get_module_quiz(self, module_id: UUID) -> QuizDefinition | None:
        """Get the quiz attached to a module, if any."""
        result = await self.session.aexecute(self._get_module_quiz, [module_id])
        row = result.one()
        if not row or row.quiz_id is None:
            return None
        return QuizDefinition.from_row(row)
