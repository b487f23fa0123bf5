"""Persistence for enrollments, course progress and quiz attempts.

The enrollments and course_progress tables are only written through
lightweight transactions:
- enroll is ``INSERT ... IF NOT EXISTS`` so exactly one concurrent enroll wins
- progress writes are ``UPDATE ... IF version = ?`` (compare-and-set)

Quiz attempts are plain inserts into their own table; each attempt has its own
row so concurrent submissions never overwrite each other.
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from .models import CourseProgress, Enrollment, QuizAttempt


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class ProgressStore(Protocol):
    """Storage operations used by the enrollment and progress services."""

    async def insert_enrollment(self, enrollment: Enrollment) -> bool: ...

    async def get_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...

    async def touch_enrollment(self, progress: CourseProgress) -> None: ...

    async def delete_enrollment(self, enrollment: Enrollment) -> None: ...

    async def add_membership(self, enrollment: Enrollment) -> None: ...

    async def remove_membership(self, enrollment: Enrollment) -> None: ...

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]: ...

    async def list_course_students(self, course_id: UUID) -> list[Enrollment]: ...

    async def insert_progress(self, progress: CourseProgress) -> bool: ...

    async def get_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress | None: ...

    async def save_progress(
        self, progress: CourseProgress, expected_version: int
    ) -> bool: ...

    async def delete_progress(self, user_id: UUID, course_id: UUID) -> None: ...

    async def append_quiz_attempt(
        self, user_id: UUID, course_id: UUID, attempt: QuizAttempt
    ) -> None: ...

    async def list_quiz_attempts(
        self, user_id: UUID, course_id: UUID, module_id: UUID | None = None
    ) -> list[QuizAttempt]: ...


class CassandraProgressStore:
    """ProgressStore backed by Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Enrollments
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (user_id, course_id, enrolled_at, last_accessed_at, completed_at,
             certificate_issued)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)

        self._touch_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET last_accessed_at = ?, completed_at = ?
            WHERE user_id = ? AND course_id = ?
            IF EXISTS
        """)

        self._delete_enrollment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
            IF EXISTS
        """)

        # Membership lookups
        self._insert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, course_id)
            VALUES (?, ?, ?)
        """)

        self._get_user_enrollments = self.session.prepare(f"""
            SELECT course_id FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        self._delete_enrollment_by_user = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ? AND enrolled_at = ? AND course_id = ?
        """)

        self._insert_course_student = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_students
            (course_id, user_id, enrolled_at)
            VALUES (?, ?, ?)
        """)

        self._get_course_students = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_students
            WHERE course_id = ?
        """)

        self._delete_course_student = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.course_students
            WHERE course_id = ? AND user_id = ?
        """)

        # Course progress
        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_progress
            (user_id, course_id, modules, overall_progress, last_accessed_at,
             completed_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_progress
            SET modules = ?, overall_progress = ?, last_accessed_at = ?,
                completed_at = ?, version = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

        self._delete_progress = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.course_progress
            WHERE user_id = ? AND course_id = ?
            IF EXISTS
        """)

        # Quiz attempts
        self._insert_quiz_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, course_id, module_id, attempt_id, quiz_id, score, passed,
             submitted_at, outcomes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_course_quiz_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_module_quiz_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND course_id = ? AND module_id = ?
        """)

        self._delete_quiz_attempts = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND course_id = ?
        """)

    # ==========================================================================
    # Enrollments
    # ==========================================================================

    async def insert_enrollment(self, enrollment: Enrollment) -> bool:
        """Insert the enrollment row unless one exists.

        Returns:
            False if the (student, course) pair was already enrolled
        """
        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.user_id,
                enrollment.course_id,
                enrollment.enrolled_at,
                enrollment.last_accessed_at,
                enrollment.completed_at,
                enrollment.certificate_issued,
            ],
        )
        return result.was_applied

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by student and course."""
        result = await self.session.aexecute(self._get_enrollment, [user_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def touch_enrollment(self, progress: CourseProgress) -> None:
        """Mirror last access and completion onto the enrollment."""
        await self.session.aexecute(
            self._touch_enrollment,
            [
                progress.last_accessed_at,
                progress.completed_at,
                progress.user_id,
                progress.course_id,
            ],
        )

    async def delete_enrollment(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._delete_enrollment, [enrollment.user_id, enrollment.course_id]
        )

    async def add_membership(self, enrollment: Enrollment) -> None:
        """Dual write: student's course list + course's student list."""
        await self.session.aexecute(
            self._insert_enrollment_by_user,
            [enrollment.user_id, enrollment.enrolled_at, enrollment.course_id],
        )
        await self.session.aexecute(
            self._insert_course_student,
            [enrollment.course_id, enrollment.user_id, enrollment.enrolled_at],
        )

    async def remove_membership(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._delete_enrollment_by_user,
            [enrollment.user_id, enrollment.enrolled_at, enrollment.course_id],
        )
        await self.session.aexecute(
            self._delete_course_student,
            [enrollment.course_id, enrollment.user_id],
        )

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get a student's enrollments, newest first."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        enrollments = []
        for row in rows:
            enrollment = await self.get_enrollment(user_id, row.course_id)
            if enrollment:
                enrollments.append(enrollment)
        return enrollments

    async def list_course_students(self, course_id: UUID) -> list[Enrollment]:
        """Get the course's enrolled students (from the lookup table)."""
        rows = await self.session.aexecute(self._get_course_students, [course_id])
        return [
            Enrollment(
                user_id=row.user_id,
                course_id=row.course_id,
                enrolled_at=row.enrolled_at,
            )
            for row in rows
        ]

    # ==========================================================================
    # Course Progress
    # ==========================================================================

    async def insert_progress(self, progress: CourseProgress) -> bool:
        """Insert the initial progress row unless one exists."""
        result = await self.session.aexecute(
            self._insert_progress,
            [
                progress.user_id,
                progress.course_id,
                progress.modules_json(),
                progress.overall_progress,
                progress.last_accessed_at,
                progress.completed_at,
                progress.version,
            ],
        )
        return result.was_applied

    async def get_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress | None:
        """Load progress with each module's quiz attempts attached."""
        result = await self.session.aexecute(self._get_progress, [user_id, course_id])
        row = result.one()
        if not row:
            return None

        progress = CourseProgress.from_row(row)
        attempts = await self.list_quiz_attempts(user_id, course_id)
        for attempt in attempts:
            entry = progress.module(attempt.module_id)
            if entry is not None:
                entry.quiz_attempts.append(attempt)
        return progress

    async def save_progress(
        self, progress: CourseProgress, expected_version: int
    ) -> bool:
        """Compare-and-set write.

        Returns:
            False if another writer bumped the version first
        """
        result = await self.session.aexecute(
            self._update_progress,
            [
                progress.modules_json(),
                progress.overall_progress,
                progress.last_accessed_at,
                progress.completed_at,
                progress.version,
                progress.user_id,
                progress.course_id,
                expected_version,
            ],
        )
        if not result.was_applied:
            logger.debug(
                "progress_cas_rejected",
                user_id=str(progress.user_id),
                course_id=str(progress.course_id),
                expected_version=expected_version,
            )
        return result.was_applied

    async def delete_progress(self, user_id: UUID, course_id: UUID) -> None:
        """Hard-delete progress and every quiz attempt of the pair."""
        await self.session.aexecute(self._delete_quiz_attempts, [user_id, course_id])
        await self.session.aexecute(self._delete_progress, [user_id, course_id])

    # ==========================================================================
    # Quiz Attempts
    # ==========================================================================

    async def append_quiz_attempt(
        self, user_id: UUID, course_id: UUID, attempt: QuizAttempt
    ) -> None:
        await self.session.aexecute(
            self._insert_quiz_attempt,
            [
                user_id,
                course_id,
                attempt.module_id,
                attempt.attempt_id,
                attempt.quiz_id,
                attempt.score,
                attempt.passed,
                attempt.submitted_at,
                attempt.outcomes_json(),
            ],
        )

    async def list_quiz_attempts(
        self, user_id: UUID, course_id: UUID, module_id: UUID | None = None
    ) -> list[QuizAttempt]:
        """Get attempts in submission order (per module)."""
        if module_id is None:
            rows = await self.session.aexecute(
                self._get_course_quiz_attempts, [user_id, course_id]
            )
        else:
            rows = await self.session.aexecute(
                self._get_module_quiz_attempts, [user_id, course_id, module_id]
            )
        return [QuizAttempt.from_row(row) for row in rows]
