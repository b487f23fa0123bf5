"""Tests for module progress transitions."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from src.catalog.models import CourseModule
from src.progress import tracker
from src.progress.errors import InvalidProgressValue, ModuleNotFound
from src.progress.models import (
    CourseProgress,
    ModuleProgress,
    ModuleStatus,
    QuizAttempt,
    can_transition,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _modules(count: int) -> list[CourseModule]:
    course_id = uuid4()
    return [
        CourseModule(id=uuid4(), course_id=course_id, position=i)
        for i in range(count)
    ]


def _attempt(module_id, passed: bool) -> QuizAttempt:
    return QuizAttempt(
        attempt_id=uuid4(),
        quiz_id=uuid4(),
        module_id=module_id,
        score=Decimal("80.0") if passed else Decimal("20.0"),
        passed=passed,
        submitted_at=NOW,
    )


@pytest.fixture
def modules() -> list[CourseModule]:
    return _modules(3)


@pytest.fixture
def progress(modules: list[CourseModule]) -> CourseProgress:
    return tracker.initialize_for_enrollment(
        uuid4(), modules[0].course_id, modules, NOW
    )


class TestTransitionTable:
    """Tests for the forward-only status table."""

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (ModuleStatus.NOT_STARTED, ModuleStatus.IN_PROGRESS, True),
            (ModuleStatus.NOT_STARTED, ModuleStatus.COMPLETED, True),
            (ModuleStatus.IN_PROGRESS, ModuleStatus.COMPLETED, True),
            (ModuleStatus.IN_PROGRESS, ModuleStatus.NOT_STARTED, False),
            (ModuleStatus.COMPLETED, ModuleStatus.IN_PROGRESS, False),
            (ModuleStatus.COMPLETED, ModuleStatus.NOT_STARTED, False),
        ],
    )
    def test_can_transition(
        self, current: ModuleStatus, target: ModuleStatus, allowed: bool
    ) -> None:
        """Status never moves backwards."""
        assert can_transition(current, target) is allowed


class TestInitialize:
    """Tests for initialize_for_enrollment."""

    def test_one_entry_per_module_in_order(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Entries follow course order, all not started at 0."""
        assert [e.module_id for e in progress.modules] == [m.id for m in modules]
        assert all(e.status is ModuleStatus.NOT_STARTED for e in progress.modules)
        assert all(e.progress == 0 for e in progress.modules)
        assert progress.version == 0
        assert progress.completed_at is None


class TestApplyModuleProgress:
    """Tests for apply_module_progress."""

    def test_partial_moves_to_in_progress(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Progress above zero starts the module."""
        entry = tracker.apply_module_progress(
            progress, modules[0].id, Decimal(40), False, NOW
        )
        assert entry.status is ModuleStatus.IN_PROGRESS
        assert entry.progress == Decimal(40)
        assert entry.last_accessed_at == NOW
        assert progress.last_accessed_at == NOW

    def test_zero_keeps_not_started(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Reporting 0 does not start the module."""
        entry = tracker.apply_module_progress(
            progress, modules[0].id, Decimal(0), False, NOW
        )
        assert entry.status is ModuleStatus.NOT_STARTED

    def test_full_completes_ungated_module(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """100 completes a module without a quiz."""
        entry = tracker.apply_module_progress(
            progress, modules[0].id, Decimal(100), False, NOW
        )
        assert entry.status is ModuleStatus.COMPLETED
        assert entry.completed_at == NOW

    def test_full_does_not_complete_gated_module(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """A quiz-gated module needs a passing attempt."""
        entry = tracker.apply_module_progress(
            progress, modules[1].id, Decimal(100), True, NOW
        )
        assert entry.status is ModuleStatus.IN_PROGRESS
        assert entry.progress == Decimal(100)
        assert entry.completed_at is None

    def test_full_completes_gated_module_with_pass(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Content at 100 plus an existing pass completes the module."""
        entry = progress.module(modules[1].id)
        entry.quiz_attempts.append(_attempt(modules[1].id, passed=True))
        tracker.apply_module_progress(progress, modules[1].id, Decimal(100), True, NOW)
        assert entry.status is ModuleStatus.COMPLETED

    def test_completed_module_is_never_regressed(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Lower progress on a completed module changes nothing but access time."""
        tracker.apply_module_progress(progress, modules[0].id, Decimal(100), False, NOW)
        entry = tracker.apply_module_progress(
            progress, modules[0].id, Decimal(10), False, NOW
        )
        assert entry.status is ModuleStatus.COMPLETED
        assert entry.progress == Decimal(100)

    @pytest.mark.parametrize("value", ["-1", "100.1", "NaN", "Infinity"])
    def test_invalid_values_rejected(
        self, progress: CourseProgress, modules: list[CourseModule], value: str
    ) -> None:
        """Values outside 0-100 are rejected."""
        with pytest.raises(InvalidProgressValue):
            tracker.apply_module_progress(
                progress, modules[0].id, Decimal(value), False, NOW
            )

    def test_unknown_module(self, progress: CourseProgress) -> None:
        """Modules outside the course are rejected."""
        with pytest.raises(ModuleNotFound):
            tracker.apply_module_progress(progress, uuid4(), Decimal(50), False, NOW)


class TestApplyQuizAttempt:
    """Tests for apply_quiz_attempt."""

    def test_failed_attempt_starts_module(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """A failing attempt moves the module to in_progress."""
        entry = tracker.apply_quiz_attempt(
            progress, modules[1].id, _attempt(modules[1].id, passed=False), NOW
        )
        assert entry.status is ModuleStatus.IN_PROGRESS
        assert len(entry.quiz_attempts) == 1

    def test_passing_attempt_completes_module(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """A passing attempt completes the module and sets progress to 100."""
        entry = tracker.apply_quiz_attempt(
            progress, modules[1].id, _attempt(modules[1].id, passed=True), NOW
        )
        assert entry.status is ModuleStatus.COMPLETED
        assert entry.progress == Decimal(100)
        assert entry.completed_at == NOW

    def test_fail_after_pass_keeps_completion(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Later failures never revoke a completed module."""
        module_id = modules[1].id
        tracker.apply_quiz_attempt(progress, module_id, _attempt(module_id, True), NOW)
        entry = tracker.apply_quiz_attempt(
            progress, module_id, _attempt(module_id, False), NOW
        )
        assert entry.status is ModuleStatus.COMPLETED
        assert len(entry.quiz_attempts) == 2

    def test_same_attempt_appended_once(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Applying the same attempt twice is a no-op."""
        attempt = _attempt(modules[1].id, passed=False)
        tracker.apply_quiz_attempt(progress, modules[1].id, attempt, NOW)
        entry = tracker.apply_quiz_attempt(progress, modules[1].id, attempt, NOW)
        assert entry.quiz_attempts == [attempt]

    def test_unknown_module(self, progress: CourseProgress) -> None:
        """Attempts on modules outside the course are rejected."""
        module_id = uuid4()
        with pytest.raises(ModuleNotFound):
            tracker.apply_quiz_attempt(
                progress, module_id, _attempt(module_id, True), NOW
            )


class TestReconcile:
    """Tests for reconcile."""

    def test_unchanged(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Same module list reports no change."""
        assert tracker.reconcile(progress, modules, NOW) is False

    def test_new_module_added(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """A module added to the course gets a not_started entry."""
        extra = CourseModule(id=uuid4(), course_id=modules[0].course_id, position=3)
        assert tracker.reconcile(progress, [*modules, extra], NOW) is True
        assert progress.modules[-1].module_id == extra.id
        assert progress.modules[-1].status is ModuleStatus.NOT_STARTED

    def test_removed_module_dropped_and_order_followed(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """Entries follow the catalog: removed ones go, order is re-synced."""
        tracker.apply_module_progress(progress, modules[2].id, Decimal(50), False, NOW)
        assert tracker.reconcile(progress, [modules[2], modules[0]], NOW) is True
        assert [e.module_id for e in progress.modules] == [modules[2].id, modules[0].id]
        assert progress.modules[0].progress == Decimal(50)

    def test_passing_attempt_promoted(
        self, progress: CourseProgress, modules: list[CourseModule]
    ) -> None:
        """A stored pass on an incomplete module completes it."""
        entry = progress.module(modules[1].id)
        entry.quiz_attempts.append(_attempt(modules[1].id, passed=True))
        assert tracker.reconcile(progress, modules, NOW) is True
        assert entry.status is ModuleStatus.COMPLETED


class TestModuleDocument:
    """Tests for the embedded JSON document."""

    def test_document_round_trip_omits_attempts(self) -> None:
        """Attempts live in their own table, not in the document."""
        entry = ModuleProgress(
            module_id=uuid4(),
            status=ModuleStatus.IN_PROGRESS,
            progress=Decimal("42.5"),
            last_accessed_at=NOW,
        )
        entry.quiz_attempts.append(_attempt(entry.module_id, passed=False))
        document = entry.to_document()
        assert "quiz_attempts" not in document
        restored = ModuleProgress.from_document(document)
        assert restored.progress == Decimal("42.5")
        assert restored.status is ModuleStatus.IN_PROGRESS
        assert restored.last_accessed_at == NOW
        assert restored.quiz_attempts == []
