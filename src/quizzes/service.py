"""Quiz submission service layer.

Business logic for:
- Serving a module's quiz (answers hidden from students)
- Grading a submission and recording it on the student's progress
- Listing a student's attempts
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog
from cassandra.util import uuid_from_time

from src.auth.permissions import is_student
from src.auth.schemas import CallerIdentity
from src.catalog.models import QuizDefinition
from src.catalog.service import CatalogReader
from src.progress.errors import (
    ModuleNotFound,
    NotEligible,
    NotEnrolled,
    QuizNotFound,
)
from src.progress.models import CourseProgress, ModuleProgress, QuizAttempt
from src.progress.service import EnrollmentService, ProgressService

from .grading import GradedAttempt, grade


logger = structlog.get_logger(__name__)


@dataclass
class QuizSubmission:
    """Graded attempt plus the progress it produced."""

    attempt: QuizAttempt
    graded: GradedAttempt
    module: ModuleProgress
    progress: CourseProgress


class QuizService:
    """Quiz access, grading and attempt history."""

    def __init__(
        self,
        catalog: CatalogReader,
        enrollments: EnrollmentService,
        progress: ProgressService,
    ):
        self.catalog = catalog
        self.enrollments = enrollments
        self.progress = progress

    async def _get_quiz(self, course_id: UUID, module_id: UUID) -> QuizDefinition:
        """Load a module's quiz, checking the module belongs to the course."""
        modules = await self.catalog.get_course_modules(course_id)
        if all(m.id != module_id for m in modules):
            raise ModuleNotFound(f"Module {module_id} is not part of this course")

        quiz = await self.catalog.get_module_quiz(module_id)
        if quiz is None:
            raise QuizNotFound
        return quiz

    async def get_quiz_for_module(
        self, caller: CallerIdentity, course_id: UUID, module_id: UUID
    ) -> tuple[QuizDefinition, bool]:
        """Get the quiz attached to a module.

        Returns:
            (quiz, include_answers); answers are only shown to staff

        Raises:
            NotEnrolled: Student is not enrolled
            NotEligible: Instructor does not own the course
            ModuleNotFound: Module is not in the course
            QuizNotFound: Module has no quiz
        """
        if not await self.enrollments.can_access_content(caller, course_id):
            if is_student(caller.role):
                raise NotEnrolled
            raise NotEligible("Only the course instructor can view this quiz")

        quiz = await self._get_quiz(course_id, module_id)
        return quiz, not is_student(caller.role)

    async def submit_quiz(
        self,
        caller: CallerIdentity,
        course_id: UUID,
        module_id: UUID,
        answers: list[int | None],
    ) -> QuizSubmission:
        """Grade a submission and record it.

        Late submissions are graded like any other; the time limit is a client
        countdown only.

        Raises:
            NotEligible: Caller is not a student
            NotEnrolled: Caller is not enrolled
            ModuleNotFound: Module is not in the course
            QuizNotFound: Module has no quiz
            IncompleteSubmission: A question was left unanswered
            InvalidAnswer: A selected option does not exist
            InvalidQuizDefinition: Quiz cannot be graded
        """
        if not is_student(caller.role):
            raise NotEligible("Only students can submit quizzes")
        if not await self.enrollments.is_enrolled(caller.id, course_id):
            raise NotEnrolled

        quiz = await self._get_quiz(course_id, module_id)
        graded = grade(quiz, answers)

        now = datetime.now(UTC)
        attempt = QuizAttempt(
            attempt_id=uuid_from_time(now),
            quiz_id=quiz.id,
            module_id=module_id,
            score=graded.score,
            passed=graded.passed,
            submitted_at=now,
            outcomes=graded.outcomes,
        )
        progress, entry = await self.progress.record_quiz_attempt(
            caller, course_id, module_id, attempt
        )

        logger.info(
            "quiz_graded",
            user_id=str(caller.id),
            quiz_id=str(quiz.id),
            score=str(graded.score),
            passed=graded.passed,
            module_status=entry.status.value,
        )
        return QuizSubmission(
            attempt=attempt, graded=graded, module=entry, progress=progress
        )

    async def list_quiz_attempts(
        self, caller: CallerIdentity, course_id: UUID, module_id: UUID
    ) -> list[QuizAttempt]:
        """Get the caller's own attempts on a module's quiz."""
        return await self.progress.list_quiz_attempts(caller, course_id, module_id)
