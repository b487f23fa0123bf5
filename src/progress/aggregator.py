"""Overall course progress.

``recompute`` is called synchronously after every mutation of a
CourseProgress, before it is persisted. It does no I/O.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from .models import CourseProgress


ONE_DECIMAL = Decimal("0.1")
FULL = Decimal(100)


def percentage(part: int | Decimal, whole: int | Decimal) -> Decimal:
    """part / whole x 100, rounded half-up to one decimal place.

    Examples:
        >>> percentage(1, 3)
        Decimal('33.3')
        >>> percentage(2, 3)
        Decimal('66.7')
    """
    value = Decimal(part) * FULL / Decimal(whole)
    return value.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


def recompute(progress: CourseProgress, now: datetime) -> Decimal:
    """Derive overall progress from module statuses.

    A course with no modules is at 0. completed_at is stamped the first time
    the course reaches 100 and is never overwritten afterwards.

    Returns:
        The new overall progress (also stored on ``progress``)
    """
    total = len(progress.modules)
    if total == 0:
        overall = Decimal(0).quantize(ONE_DECIMAL)
    else:
        completed = sum(1 for m in progress.modules if m.is_completed)
        overall = percentage(completed, total)

    progress.overall_progress = overall
    if overall >= FULL and progress.completed_at is None:
        progress.completed_at = now
    return overall
