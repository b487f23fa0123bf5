"""Shared fixtures: in-memory catalog and store, services, API client."""

import copy
import os
from datetime import timedelta
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_REQUESTS", "false")
os.environ.setdefault("REDIS_ENABLED", "false")

from fastapi.testclient import TestClient  # noqa: E402

from src.auth.permissions import UserRole  # noqa: E402
from src.auth.schemas import CallerIdentity  # noqa: E402
from src.auth.security import create_access_token  # noqa: E402
from src.catalog.models import (  # noqa: E402
    Course,
    CourseModule,
    QuizDefinition,
    QuizQuestion,
)
from src.core.locks import ProgressLockManager  # noqa: E402
from src.main import create_app, wire_services  # noqa: E402
from src.progress.models import CourseProgress, Enrollment, QuizAttempt  # noqa: E402
from src.progress.service import EnrollmentService, ProgressService  # noqa: E402
from src.quizzes.service import QuizService  # noqa: E402


# ==============================================================================
# In-memory doubles
# ==============================================================================


class InMemoryCatalog:
    """CatalogReader over plain dicts."""

    def __init__(self) -> None:
        self.courses: dict[UUID, Course] = {}
        self.modules: dict[UUID, list[CourseModule]] = {}
        self.quizzes: dict[UUID, QuizDefinition] = {}

    def add_course(
        self,
        module_count: int,
        published: bool = True,
        instructor_id: UUID | None = None,
    ) -> tuple[Course, list[CourseModule]]:
        course = Course(
            id=uuid4(),
            title="Course",
            instructor_id=instructor_id or uuid4(),
            published=published,
        )
        modules = [
            CourseModule(id=uuid4(), course_id=course.id, position=i, title=f"M{i}")
            for i in range(module_count)
        ]
        self.courses[course.id] = course
        self.modules[course.id] = modules
        return course, modules

    def add_quiz(
        self,
        module: CourseModule,
        questions: list[QuizQuestion],
        passing_score: int = 70,
    ) -> QuizDefinition:
        quiz = QuizDefinition(
            id=uuid4(),
            module_id=module.id,
            title="Quiz",
            questions=questions,
            passing_score=passing_score,
        )
        self.quizzes[module.id] = quiz
        return quiz

    async def get_course(self, course_id: UUID) -> Course | None:
        return self.courses.get(course_id)

    async def get_course_modules(self, course_id: UUID) -> list[CourseModule]:
        return list(self.modules.get(course_id, []))

    async def get_module_quiz(self, module_id: UUID) -> QuizDefinition | None:
        return self.quizzes.get(module_id)


class InMemoryProgressStore:
    """ProgressStore with the same conditional-write semantics as Cassandra.

    Records are deep-copied on the way in and out so callers cannot mutate
    stored state without a write.
    """

    def __init__(self) -> None:
        self.enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self.progress: dict[tuple[UUID, UUID], CourseProgress] = {}
        self.attempts: dict[tuple[UUID, UUID], list[QuizAttempt]] = {}
        self.by_user: dict[UUID, set[UUID]] = {}
        self.by_course: dict[UUID, set[UUID]] = {}
        self.cas_failures = 0
        self.fail_progress_insert = False
        self.save_calls = 0

    async def insert_enrollment(self, enrollment: Enrollment) -> bool:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self.enrollments:
            return False
        self.enrollments[key] = copy.deepcopy(enrollment)
        return True

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return copy.deepcopy(self.enrollments.get((user_id, course_id)))

    async def touch_enrollment(self, progress: CourseProgress) -> None:
        enrollment = self.enrollments.get((progress.user_id, progress.course_id))
        if enrollment:
            enrollment.last_accessed_at = progress.last_accessed_at
            enrollment.completed_at = progress.completed_at

    async def delete_enrollment(self, enrollment: Enrollment) -> None:
        self.enrollments.pop((enrollment.user_id, enrollment.course_id), None)

    async def add_membership(self, enrollment: Enrollment) -> None:
        self.by_user.setdefault(enrollment.user_id, set()).add(enrollment.course_id)
        self.by_course.setdefault(enrollment.course_id, set()).add(enrollment.user_id)

    async def remove_membership(self, enrollment: Enrollment) -> None:
        self.by_user.get(enrollment.user_id, set()).discard(enrollment.course_id)
        self.by_course.get(enrollment.course_id, set()).discard(enrollment.user_id)

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        return [
            copy.deepcopy(self.enrollments[(user_id, course_id)])
            for course_id in self.by_user.get(user_id, set())
            if (user_id, course_id) in self.enrollments
        ]

    async def list_course_students(self, course_id: UUID) -> list[Enrollment]:
        return [
            copy.deepcopy(self.enrollments[(user_id, course_id)])
            for user_id in self.by_course.get(course_id, set())
            if (user_id, course_id) in self.enrollments
        ]

    async def insert_progress(self, progress: CourseProgress) -> bool:
        if self.fail_progress_insert:
            raise ConnectionError("progress write failed")
        key = (progress.user_id, progress.course_id)
        if key in self.progress:
            return False
        self.progress[key] = copy.deepcopy(progress)
        return True

    async def get_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress | None:
        stored = self.progress.get((user_id, course_id))
        if stored is None:
            return None
        progress = copy.deepcopy(stored)
        for attempt in self.attempts.get((user_id, course_id), []):
            entry = progress.module(attempt.module_id)
            if entry is not None:
                entry.quiz_attempts.append(copy.deepcopy(attempt))
        return progress

    async def save_progress(
        self, progress: CourseProgress, expected_version: int
    ) -> bool:
        self.save_calls += 1
        key = (progress.user_id, progress.course_id)
        stored = self.progress.get(key)
        if self.cas_failures:
            self.cas_failures -= 1
            return False
        if stored is None or stored.version != expected_version:
            return False
        saved = copy.deepcopy(progress)
        for entry in saved.modules:
            entry.quiz_attempts = []
        self.progress[key] = saved
        return True

    async def delete_progress(self, user_id: UUID, course_id: UUID) -> None:
        self.attempts.pop((user_id, course_id), None)
        self.progress.pop((user_id, course_id), None)

    async def append_quiz_attempt(
        self, user_id: UUID, course_id: UUID, attempt: QuizAttempt
    ) -> None:
        self.attempts.setdefault((user_id, course_id), []).append(
            copy.deepcopy(attempt)
        )

    async def list_quiz_attempts(
        self, user_id: UUID, course_id: UUID, module_id: UUID | None = None
    ) -> list[QuizAttempt]:
        # timeuuid clustering order
        matching = [
            a
            for a in self.attempts.get((user_id, course_id), [])
            if module_id is None or a.module_id == module_id
        ]
        return [
            copy.deepcopy(a) for a in sorted(matching, key=lambda a: a.attempt_id.time)
        ]


# ==============================================================================
# Fixtures
# ==============================================================================


def make_questions(
    count: int, correct: int = 0, options: int = 3
) -> list[QuizQuestion]:
    """Questions with one point each and the same correct option."""
    return [
        QuizQuestion(
            prompt=f"Question {i + 1}",
            options=[f"Option {o}" for o in range(options)],
            correct_index=correct,
        )
        for i in range(count)
    ]


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def locks() -> ProgressLockManager:
    return ProgressLockManager(wait_seconds=1.0)


@pytest.fixture
def enrollment_service(store, catalog, locks) -> EnrollmentService:
    return EnrollmentService(store=store, catalog=catalog, locks=locks)


@pytest.fixture
def progress_service(store, catalog, locks) -> ProgressService:
    return ProgressService(store=store, catalog=catalog, locks=locks)


@pytest.fixture
def quiz_service(catalog, enrollment_service, progress_service) -> QuizService:
    return QuizService(
        catalog=catalog,
        enrollments=enrollment_service,
        progress=progress_service,
    )


@pytest.fixture
def student() -> CallerIdentity:
    return CallerIdentity(id=uuid4(), role=UserRole.STUDENT)


@pytest.fixture
def instructor() -> CallerIdentity:
    return CallerIdentity(id=uuid4(), role=UserRole.INSTRUCTOR)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def course_with_quiz(catalog, instructor):
    """Three modules; the second carries a five-question quiz (pass at 70)."""
    course, modules = catalog.add_course(3, instructor_id=instructor.id)
    quiz = catalog.add_quiz(modules[1], make_questions(5), passing_score=70)
    return course, modules, quiz


@pytest.fixture
def app(store, catalog, locks):
    application = create_app(use_lifespan=False)
    wire_services(application, store=store, catalog=catalog, locks=locks)
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Build a Bearer header for a caller."""

    def _headers(caller: CallerIdentity) -> dict[str, str]:
        token = create_access_token(
            {"sub": str(caller.id), "role": caller.role.value},
            expires_delta=timedelta(minutes=5),
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
