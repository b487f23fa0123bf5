"""Pydantic schemas for quizzes.

Request and response models for:
- Quiz retrieval (answers hidden from students)
- Quiz submission and grading result
- Attempt history
"""

from uuid import UUID

from pydantic import BaseModel, Field, StrictInt

from src.catalog.models import QuizDefinition
from src.progress.schemas import (
    ModuleProgressResponse,
    QuestionOutcomeResponse,
    QuizAttemptResponse,
)

from .service import QuizSubmission


class QuizQuestionResponse(BaseModel):
    """Question as shown to the caller."""

    question: str
    options: list[str]
    points: int
    correct_answer: int | None = None


class QuizResponse(BaseModel):
    """Quiz attached to a module."""

    id: UUID
    module_id: UUID
    title: str
    questions: list[QuizQuestionResponse]
    total_points: int
    time_limit_minutes: int
    passing_score: int

    @classmethod
    def from_entity(
        cls, quiz: QuizDefinition, include_answers: bool = False
    ) -> "QuizResponse":
        """Create response from entity."""
        return cls(
            id=quiz.id,
            module_id=quiz.module_id,
            title=quiz.title,
            questions=[
                QuizQuestionResponse(**q.to_dict(include_answer=include_answers))
                for q in quiz.questions
            ],
            total_points=quiz.total_points,
            time_limit_minutes=quiz.time_limit_minutes,
            passing_score=quiz.passing_score,
        )


class SubmitQuizRequest(BaseModel):
    """Selected option index per question, null for unanswered."""

    answers: list[StrictInt | None] = Field(..., description="One entry per question")


class QuizSubmissionResponse(BaseModel):
    """Grading result plus updated progress."""

    attempt_id: UUID
    score: float = Field(description="0-100 percentage, one decimal")
    passed: bool
    outcomes: list[QuestionOutcomeResponse]
    module: ModuleProgressResponse
    overall_progress: float

    @classmethod
    def from_submission(
        cls, submission: QuizSubmission
    ) -> "QuizSubmissionResponse":
        return cls(
            attempt_id=submission.attempt.attempt_id,
            score=float(submission.graded.score),
            passed=submission.graded.passed,
            outcomes=[
                QuestionOutcomeResponse.from_entity(o)
                for o in submission.graded.outcomes
            ],
            module=ModuleProgressResponse.from_entity(submission.module),
            overall_progress=float(submission.progress.overall_progress),
        )


class QuizAttemptListResponse(BaseModel):
    """Attempts in submission order."""

    attempts: list[QuizAttemptResponse]
    total: int
