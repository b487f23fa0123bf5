"""Enrollment and progress service layer.

Business logic for:
- Enrollment lifecycle (enroll, unenroll, membership lists)
- Content access checks
- Module progress updates and quiz attempt recording
- Progress queries

Every write for one (student, course) pair runs under that pair's lock, and
progress rows are written with compare-and-set. A lost compare-and-set is
retried with a fresh read before surfacing ProgressWriteConflict.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

import structlog

from src.auth.permissions import (
    can_enroll,
    can_view_course_roster,
    is_admin,
    is_instructor,
)
from src.auth.schemas import CallerIdentity
from src.catalog.models import Course
from src.catalog.service import CatalogReader
from src.core.context import set_course_id
from src.core.locks import LockAcquireTimeout, ProgressLockManager

from . import tracker
from .aggregator import recompute
from .errors import (
    AlreadyEnrolled,
    CourseNotFound,
    CourseNotPublished,
    ModuleNotFound,
    NotEligible,
    NotEnrolled,
    ProgressWriteConflict,
)
from .models import CourseProgress, Enrollment, ModuleProgress, QuizAttempt
from .store import ProgressStore


logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _assert_student(caller: CallerIdentity, action: str) -> None:
    """Only students enroll, report progress or submit quizzes."""
    if not can_enroll(caller.role):
        logger.warning(
            "progress_action_rejected",
            user_id=str(caller.id),
            role=caller.role.value,
            action=action,
        )
        raise NotEligible(f"Only students can {action}")


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Owns the fact "student S is enrolled in course C"."""

    def __init__(
        self,
        store: ProgressStore,
        catalog: CatalogReader,
        locks: ProgressLockManager,
    ):
        self.store = store
        self.catalog = catalog
        self.locks = locks

    async def _get_course(self, course_id: UUID) -> Course:
        course = await self.catalog.get_course(course_id)
        if course is None:
            raise CourseNotFound
        return course

    async def enroll(
        self, caller: CallerIdentity, course_id: UUID
    ) -> tuple[Enrollment, CourseProgress]:
        """Enroll the caller and create their empty progress.

        Raises:
            NotEligible: Caller is not a student
            CourseNotFound: Course does not exist
            CourseNotPublished: Course is not open for enrollment
            AlreadyEnrolled: Caller already enrolled (including a lost race)
        """
        _assert_student(caller, "enroll")
        set_course_id(course_id)

        course = await self._get_course(course_id)
        if not course.published:
            raise CourseNotPublished

        modules = await self.catalog.get_course_modules(course_id)
        now = _now()
        enrollment = Enrollment(user_id=caller.id, course_id=course_id, enrolled_at=now)
        progress = tracker.initialize_for_enrollment(caller.id, course_id, modules, now)
        recompute(progress, now)

        async with _serialized(self.locks, caller.id, course_id):
            if not await self.store.insert_enrollment(enrollment):
                raise AlreadyEnrolled

            try:
                if not await self.store.insert_progress(progress):
                    raise ProgressWriteConflict("Stale progress record exists")
                await self.store.add_membership(enrollment)
            except Exception:
                # Enrollment and progress exist together or not at all
                logger.exception(
                    "enrollment_rolled_back",
                    user_id=str(caller.id),
                    course_id=str(course_id),
                )
                await self.store.delete_progress(caller.id, course_id)
                await self.store.delete_enrollment(enrollment)
                raise

        logger.info(
            "user_enrolled",
            user_id=str(caller.id),
            course_id=str(course_id),
            modules_total=len(modules),
        )
        return enrollment, progress

    async def unenroll(self, caller: CallerIdentity, course_id: UUID) -> None:
        """Hard-delete the enrollment, its progress and quiz attempts.

        Raises:
            NotEligible: Caller is not a student
            NotEnrolled: No enrollment exists
        """
        _assert_student(caller, "unenroll")
        set_course_id(course_id)

        async with _serialized(self.locks, caller.id, course_id):
            enrollment = await self.store.get_enrollment(caller.id, course_id)
            if enrollment is None:
                raise NotEnrolled

            await self.store.delete_progress(caller.id, course_id)
            await self.store.remove_membership(enrollment)
            await self.store.delete_enrollment(enrollment)

        logger.info(
            "user_unenrolled",
            user_id=str(caller.id),
            course_id=str(course_id),
        )

    async def is_enrolled(self, student_id: UUID, course_id: UUID) -> bool:
        """Check enrollment."""
        return await self.store.get_enrollment(student_id, course_id) is not None

    async def can_access_content(self, caller: CallerIdentity, course_id: UUID) -> bool:
        """Check content access.

        Access hierarchy:
        1. Admin: always
        2. Instructor: own courses (published or not)
        3. Student: requires enrollment
        """
        if is_admin(caller.role):
            return True
        if is_instructor(caller.role):
            course = await self.catalog.get_course(course_id)
            return course is not None and course.instructor_id == caller.id
        return await self.is_enrolled(caller.id, course_id)

    async def list_enrollments(
        self, caller: CallerIdentity
    ) -> list[tuple[Enrollment, CourseProgress | None]]:
        """Get the caller's enrollments with their progress."""
        enrollments = await self.store.list_user_enrollments(caller.id)
        result = []
        for enrollment in enrollments:
            progress = await self.store.get_progress(caller.id, enrollment.course_id)
            result.append((enrollment, progress))
        return result

    async def list_course_students(
        self, caller: CallerIdentity, course_id: UUID
    ) -> list[Enrollment]:
        """Get the course's enrolled students.

        Raises:
            CourseNotFound: Course does not exist
            NotEligible: Caller is neither admin nor the owning instructor
        """
        course = await self._get_course(course_id)
        if not can_view_course_roster(caller.role, caller.id, course.instructor_id):
            raise NotEligible("Only the course instructor can list its students")
        return await self.store.list_course_students(course_id)


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Owns per-student, per-course progress state."""

    def __init__(
        self,
        store: ProgressStore,
        catalog: CatalogReader,
        locks: ProgressLockManager,
        write_retries: int = 1,
    ):
        self.store = store
        self.catalog = catalog
        self.locks = locks
        self.write_retries = write_retries

    async def _load(self, student_id: UUID, course_id: UUID) -> CourseProgress:
        """Load progress aligned with the current module list (not persisted)."""
        progress = await self.store.get_progress(student_id, course_id)
        if progress is None:
            raise NotEnrolled
        modules = await self.catalog.get_course_modules(course_id)
        now = _now()
        if tracker.reconcile(progress, modules, now):
            recompute(progress, now)
        return progress

    async def _commit(
        self,
        student_id: UUID,
        course_id: UUID,
        apply: Callable[[CourseProgress, datetime], ModuleProgress],
        progress: CourseProgress | None = None,
    ) -> tuple[CourseProgress, ModuleProgress]:
        """Apply a transition, recompute and compare-and-set.

        Must be called with the pair's lock held.
        """
        for attempt in range(self.write_retries + 1):
            if progress is None:
                progress = await self._load(student_id, course_id)

            was_completed = progress.is_completed
            now = _now()
            entry = apply(progress, now)
            recompute(progress, now)

            expected_version = progress.version
            progress.version = expected_version + 1
            if await self.store.save_progress(progress, expected_version):
                await self.store.touch_enrollment(progress)
                if progress.is_completed and not was_completed:
                    logger.info(
                        "course_completed",
                        user_id=str(student_id),
                        course_id=str(course_id),
                    )
                return progress, entry

            logger.warning(
                "progress_write_conflict",
                user_id=str(student_id),
                course_id=str(course_id),
                attempt=attempt + 1,
            )
            progress = None

        raise ProgressWriteConflict

    async def get_progress(
        self, caller: CallerIdentity, course_id: UUID
    ) -> CourseProgress:
        """Read the caller's progress in a course.

        Raises:
            NotEnrolled: No progress exists
        """
        set_course_id(course_id)
        return await self._load(caller.id, course_id)

    async def update_module_progress(
        self,
        caller: CallerIdentity,
        course_id: UUID,
        module_id: UUID,
        percent: Decimal,
    ) -> tuple[CourseProgress, ModuleProgress]:
        """Set a module's content progress.

        Raises:
            NotEligible: Caller is not a student
            InvalidProgressValue: percent outside 0-100
            NotEnrolled: No progress exists
            ModuleNotFound: Module is not in the course
            ProgressWriteConflict: Write kept losing to concurrent writers
        """
        _assert_student(caller, "update progress")
        set_course_id(course_id)
        tracker.validate_progress_value(percent)

        quiz = await self.catalog.get_module_quiz(module_id)
        quiz_gated = quiz is not None

        def apply(progress: CourseProgress, now: datetime) -> ModuleProgress:
            return tracker.apply_module_progress(
                progress, module_id, percent, quiz_gated, now
            )

        async with _serialized(self.locks, caller.id, course_id):
            progress, entry = await self._commit(caller.id, course_id, apply)

        logger.info(
            "module_progress_updated",
            user_id=str(caller.id),
            course_id=str(course_id),
            module_id=str(module_id),
            progress=str(entry.progress),
            status=entry.status.value,
            overall_progress=str(progress.overall_progress),
        )
        return progress, entry

    async def record_quiz_attempt(
        self,
        caller: CallerIdentity,
        course_id: UUID,
        module_id: UUID,
        attempt: QuizAttempt,
    ) -> tuple[CourseProgress, ModuleProgress]:
        """Append a graded attempt and re-evaluate the module.

        The attempt row is written once, before the progress compare-and-set;
        a conflict on the progress row never drops it.

        Raises:
            NotEligible: Caller is not a student
            NotEnrolled: No progress exists
            ModuleNotFound: Module is not in the course
            ProgressWriteConflict: Write kept losing to concurrent writers
        """
        _assert_student(caller, "submit quizzes")
        set_course_id(course_id)

        def apply(progress: CourseProgress, now: datetime) -> ModuleProgress:
            return tracker.apply_quiz_attempt(progress, module_id, attempt, now)

        async with _serialized(self.locks, caller.id, course_id):
            progress = await self._load(caller.id, course_id)
            if progress.module(module_id) is None:
                raise ModuleNotFound
            await self.store.append_quiz_attempt(caller.id, course_id, attempt)
            logger.info(
                "quiz_attempt_recorded",
                user_id=str(caller.id),
                course_id=str(course_id),
                module_id=str(module_id),
                attempt_id=str(attempt.attempt_id),
                score=str(attempt.score),
                passed=attempt.passed,
            )
            progress, entry = await self._commit(
                caller.id, course_id, apply, progress=progress
            )

        return progress, entry

    async def list_quiz_attempts(
        self, caller: CallerIdentity, course_id: UUID, module_id: UUID
    ) -> list[QuizAttempt]:
        """Get the caller's attempts on a module, in submission order.

        Raises:
            NotEnrolled: Caller is not enrolled
        """
        if await self.store.get_enrollment(caller.id, course_id) is None:
            raise NotEnrolled
        return await self.store.list_quiz_attempts(caller.id, course_id, module_id)


# ==============================================================================
# Helpers
# ==============================================================================


@asynccontextmanager
async def _serialized(
    locks: ProgressLockManager, student_id: UUID, course_id: UUID
) -> AsyncIterator[None]:
    """Hold the pair's lock; a lock timeout surfaces as a write conflict."""
    try:
        async with locks.hold(student_id, course_id):
            yield
    except LockAcquireTimeout as e:
        raise ProgressWriteConflict from e
