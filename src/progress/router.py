"""Enrollment and progress API endpoints.

Provides routes for:
- Course enrollment (enroll, unenroll, status, student list)
- Enrollment listing for the current student
- Progress queries and module progress updates

ProgressError raised by the services is translated to an HTTP response by
the application-level handler registered in main.py.
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import CurrentUser

from .dependencies import EnrollmentServiceDep, ProgressServiceDep
from .schemas import (
    CourseProgressResponse,
    CourseStudentResponse,
    CourseStudentsResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollmentStatusResponse,
    EnrollmentSummaryResponse,
    EnrollResponse,
    MessageResponse,
    ModuleProgressUpdateResponse,
    UpdateModuleProgressRequest,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
courses_router = APIRouter(prefix="/v1/courses", tags=["enrollments"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@courses_router.post(
    "/{course_id}/enroll",
    response_model=EnrollResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollResponse:
    """Enroll the current student and create their empty progress."""
    enrollment, progress = await enrollment_service.enroll(user, course_id)
    return EnrollResponse(
        enrollment=EnrollmentResponse.from_entity(enrollment),
        progress=CourseProgressResponse.from_entity(progress),
    )


@courses_router.delete(
    "/{course_id}/enroll",
    response_model=MessageResponse,
    summary="Unenroll from course",
)
async def unenroll(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    """Leave a course. Progress and quiz attempts are deleted."""
    await enrollment_service.unenroll(user, course_id)
    return MessageResponse(message="Unenrolled from course")


@courses_router.get(
    "/{course_id}/enrollment",
    response_model=EnrollmentStatusResponse,
    summary="Check enrollment",
)
async def get_enrollment_status(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentStatusResponse:
    """Check whether the current user is enrolled in a course."""
    enrolled = await enrollment_service.is_enrolled(user.id, course_id)
    return EnrollmentStatusResponse(course_id=course_id, enrolled=enrolled)


@courses_router.get(
    "/{course_id}/students",
    response_model=CourseStudentsResponse,
    summary="List enrolled students",
)
async def list_course_students(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> CourseStudentsResponse:
    """List a course's students (owning instructor or admin)."""
    enrollments = await enrollment_service.list_course_students(user, course_id)
    return CourseStudentsResponse(
        course_id=course_id,
        students=[
            CourseStudentResponse(user_id=e.user_id, enrolled_at=e.enrolled_at)
            for e in enrollments
        ],
        total=len(enrollments),
    )


@enrollments_router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Get all courses the current user is enrolled in, with progress."""
    items = await enrollment_service.list_enrollments(user)
    return EnrollmentListResponse(
        enrollments=[
            EnrollmentSummaryResponse.from_entities(enrollment, progress)
            for enrollment, progress in items
        ],
        total=len(items),
    )


# ==============================================================================
# Progress Endpoints
# ==============================================================================


@router.get(
    "/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Get overall and per-module progress for a course."""
    progress = await progress_service.get_progress(user, course_id)
    return CourseProgressResponse.from_entity(progress)


@router.put(
    "/{course_id}/modules/{module_id}",
    response_model=ModuleProgressUpdateResponse,
    summary="Update module progress",
)
async def update_module_progress(
    course_id: UUID,
    module_id: UUID,
    data: UpdateModuleProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ModuleProgressUpdateResponse:
    """Set a module's content progress (0-100).

    A module with a quiz completes only after a passing attempt.
    """
    progress, module = await progress_service.update_module_progress(
        user, course_id, module_id, data.percent_complete
    )
    return ModuleProgressUpdateResponse.from_entities(progress, module)
