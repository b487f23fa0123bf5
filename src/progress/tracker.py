"""Module progress transitions.

Pure functions over a CourseProgress. The service loads the record, applies
one of these, runs the aggregator and persists the result under the
(student, course) lock.

Status rules:
- A module without a quiz completes when its progress reaches 100
- A module with a quiz completes only once a passing attempt exists
- Any progress above 0, or any quiz attempt, moves it to in_progress
- Nothing moves backwards (see MODULE_STATUS_TRANSITIONS)
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from src.catalog.models import CourseModule

from .errors import InvalidProgressValue, ModuleNotFound
from .models import (
    CourseProgress,
    ModuleProgress,
    ModuleStatus,
    QuizAttempt,
    can_transition,
)


MIN_PROGRESS = Decimal(0)
MAX_PROGRESS = Decimal(100)


def initialize_for_enrollment(
    student_id: UUID,
    course_id: UUID,
    modules: Sequence[CourseModule],
    now: datetime,
) -> CourseProgress:
    """Fresh progress: one not_started entry at 0 per module, in course order."""
    return CourseProgress(
        user_id=student_id,
        course_id=course_id,
        modules=[ModuleProgress(module_id=m.id) for m in modules],
        last_accessed_at=now,
    )


def advance(entry: ModuleProgress, target: ModuleStatus, now: datetime) -> bool:
    """Move a module to target if the transition table allows it.

    Returns:
        True if the status changed
    """
    if target is entry.status or not can_transition(entry.status, target):
        return False
    entry.status = target
    if target is ModuleStatus.COMPLETED:
        entry.completed_at = now
        entry.progress = MAX_PROGRESS
    return True


def reconcile(
    progress: CourseProgress,
    modules: Sequence[CourseModule],
    now: datetime,
) -> bool:
    """Align stored entries with the course's current module list.

    New modules get a not_started entry, removed modules are dropped and the
    order follows the catalog. Modules that already hold a passing attempt are
    promoted to completed.

    Returns:
        True if anything changed
    """
    existing = {entry.module_id: entry for entry in progress.modules}
    synced = [existing.get(m.id) or ModuleProgress(module_id=m.id) for m in modules]
    changed = [e.module_id for e in synced] != [e.module_id for e in progress.modules]
    progress.modules = synced

    for entry in synced:
        if entry.has_passing_attempt and advance(entry, ModuleStatus.COMPLETED, now):
            changed = True
    return changed


def validate_progress_value(percent: Decimal) -> Decimal:
    """Reject progress outside 0-100."""
    if not percent.is_finite() or not MIN_PROGRESS <= percent <= MAX_PROGRESS:
        raise InvalidProgressValue(f"Progress must be between 0 and 100, got {percent}")
    return percent


def _require_entry(progress: CourseProgress, module_id: UUID) -> ModuleProgress:
    entry = progress.module(module_id)
    if entry is None:
        raise ModuleNotFound(f"Module {module_id} is not part of this course")
    return entry


def apply_module_progress(
    progress: CourseProgress,
    module_id: UUID,
    percent: Decimal,
    quiz_gated: bool,
    now: datetime,
) -> ModuleProgress:
    """Set a module's content progress.

    Raises:
        InvalidProgressValue: percent outside 0-100
        ModuleNotFound: module is not in the course
    """
    validate_progress_value(percent)
    entry = _require_entry(progress, module_id)

    if not entry.is_completed:
        entry.progress = percent

    if percent >= MAX_PROGRESS and (not quiz_gated or entry.has_passing_attempt):
        advance(entry, ModuleStatus.COMPLETED, now)
    elif percent > MIN_PROGRESS:
        advance(entry, ModuleStatus.IN_PROGRESS, now)

    entry.last_accessed_at = now
    progress.last_accessed_at = now
    return entry


def apply_quiz_attempt(
    progress: CourseProgress,
    module_id: UUID,
    attempt: QuizAttempt,
    now: datetime,
) -> ModuleProgress:
    """Append a graded attempt and re-evaluate the module's quiz gate.

    Appending the same attempt twice is a no-op.

    Raises:
        ModuleNotFound: module is not in the course
    """
    entry = _require_entry(progress, module_id)

    if all(a.attempt_id != attempt.attempt_id for a in entry.quiz_attempts):
        entry.quiz_attempts.append(attempt)

    if entry.has_passing_attempt:
        advance(entry, ModuleStatus.COMPLETED, now)
    else:
        advance(entry, ModuleStatus.IN_PROGRESS, now)

    entry.last_accessed_at = now
    progress.last_accessed_at = now
    return entry
