"""FastAPI dependencies for enrollment and progress.

Provides dependency injection for:
- Enrollment and progress services
- Error translation (ProgressError -> HTTP status)
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .errors import ProgressError
from .service import EnrollmentService, ProgressService


def _from_app_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} service not available",
        )
    return service


async def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get enrollment service from app state."""
    return _from_app_state(request, "enrollment_service", "Enrollment")


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state."""
    return _from_app_state(request, "progress_service", "Progress")


# Type aliases for dependency injection
EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


PROGRESS_ERROR_STATUS = {
    "incomplete_submission": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_answer": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_progress_value": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_quiz_definition": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "module_not_found": status.HTTP_404_NOT_FOUND,
    "quiz_not_found": status.HTTP_404_NOT_FOUND,
    "course_not_found": status.HTTP_404_NOT_FOUND,
    "already_enrolled": status.HTTP_409_CONFLICT,
    "not_enrolled": status.HTTP_404_NOT_FOUND,
    "not_eligible": status.HTTP_403_FORBIDDEN,
    "course_not_published": status.HTTP_400_BAD_REQUEST,
    "progress_write_conflict": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def progress_error_status(error: ProgressError) -> int:
    """HTTP status for a progress error (500 for unknown codes)."""
    return PROGRESS_ERROR_STATUS.get(
        error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

