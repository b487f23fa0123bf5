"""Pydantic schemas for enrollment and progress.

Request and response models for:
- Enrollment (enroll, status, listings)
- Course progress queries
- Module progress updates
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    CourseProgress,
    Enrollment,
    ModuleProgress,
    ModuleStatus,
    QuestionOutcome,
    QuizAttempt,
)


# ==============================================================================
# Quiz Attempt Schemas
# ==============================================================================


class QuestionOutcomeResponse(BaseModel):
    """Right/wrong for one question."""

    question_index: int
    selected_index: int
    is_correct: bool

    @classmethod
    def from_entity(cls, entity: QuestionOutcome) -> "QuestionOutcomeResponse":
        return cls(
            question_index=entity.question_index,
            selected_index=entity.selected_index,
            is_correct=entity.is_correct,
        )


class QuizAttemptResponse(BaseModel):
    """One graded quiz attempt."""

    attempt_id: UUID
    quiz_id: UUID
    module_id: UUID
    score: float = Field(description="0-100 percentage, one decimal")
    passed: bool
    submitted_at: datetime
    outcomes: list[QuestionOutcomeResponse]

    @classmethod
    def from_entity(cls, entity: QuizAttempt) -> "QuizAttemptResponse":
        """Create response from entity."""
        return cls(
            attempt_id=entity.attempt_id,
            quiz_id=entity.quiz_id,
            module_id=entity.module_id,
            score=float(entity.score),
            passed=entity.passed,
            submitted_at=entity.submitted_at,
            outcomes=[QuestionOutcomeResponse.from_entity(o) for o in entity.outcomes],
        )


# ==============================================================================
# Progress Schemas
# ==============================================================================


class ModuleProgressResponse(BaseModel):
    """Progress on one module."""

    model_config = ConfigDict(from_attributes=True)

    module_id: UUID
    status: ModuleStatus
    progress: float = Field(description="0-100 percentage")
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    quiz_attempts: list[QuizAttemptResponse] = []

    @classmethod
    def from_entity(cls, entity: ModuleProgress) -> "ModuleProgressResponse":
        """Create response from entity."""
        return cls(
            module_id=entity.module_id,
            status=entity.status,
            progress=float(entity.progress),
            last_accessed_at=entity.last_accessed_at,
            completed_at=entity.completed_at,
            quiz_attempts=[
                QuizAttemptResponse.from_entity(a) for a in entity.quiz_attempts
            ],
        )


class CourseProgressResponse(BaseModel):
    """Full course progress for the current student."""

    course_id: UUID
    user_id: UUID
    overall_progress: float = Field(description="0-100 percentage, one decimal")
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    modules: list[ModuleProgressResponse]

    @classmethod
    def from_entity(cls, entity: CourseProgress) -> "CourseProgressResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            user_id=entity.user_id,
            overall_progress=float(entity.overall_progress),
            last_accessed_at=entity.last_accessed_at,
            completed_at=entity.completed_at,
            modules=[ModuleProgressResponse.from_entity(m) for m in entity.modules],
        )


class UpdateModuleProgressRequest(BaseModel):
    """Request to set a module's content progress."""

    percent_complete: Decimal = Field(..., description="0-100 percentage")


class ModuleProgressUpdateResponse(BaseModel):
    """Updated module plus the recomputed course progress."""

    module: ModuleProgressResponse
    overall_progress: float
    completed_at: datetime | None = None

    @classmethod
    def from_entities(
        cls, progress: CourseProgress, module: ModuleProgress
    ) -> "ModuleProgressUpdateResponse":
        return cls(
            module=ModuleProgressResponse.from_entity(module),
            overall_progress=float(progress.overall_progress),
            completed_at=progress.completed_at,
        )


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    course_id: UUID
    enrolled_at: datetime
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    certificate_issued: bool = False

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            enrolled_at=entity.enrolled_at,
            last_accessed_at=entity.last_accessed_at,
            completed_at=entity.completed_at,
            certificate_issued=entity.certificate_issued,
        )


class EnrollResponse(BaseModel):
    """New enrollment with its (empty) progress."""

    enrollment: EnrollmentResponse
    progress: CourseProgressResponse


class EnrollmentStatusResponse(BaseModel):
    """Whether the current user is enrolled."""

    course_id: UUID
    enrolled: bool


class EnrollmentSummaryResponse(EnrollmentResponse):
    """Enrollment with overall progress (listing)."""

    overall_progress: float = 0.0

    @classmethod
    def from_entities(
        cls, enrollment: Enrollment, progress: CourseProgress | None
    ) -> "EnrollmentSummaryResponse":
        return cls(
            **EnrollmentResponse.from_entity(enrollment).model_dump(),
            overall_progress=float(progress.overall_progress) if progress else 0.0,
        )


class EnrollmentListResponse(BaseModel):
    """List of enrollments."""

    enrollments: list[EnrollmentSummaryResponse]
    total: int


class CourseStudentResponse(BaseModel):
    """One enrolled student."""

    user_id: UUID
    enrolled_at: datetime


class CourseStudentsResponse(BaseModel):
    """Students enrolled in a course."""

    course_id: UUID
    students: list[CourseStudentResponse]
    total: int


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str
