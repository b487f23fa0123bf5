"""Quiz API endpoints.

Provides routes for:
- Fetching a module's quiz
- Submitting answers for grading
- Listing the current student's attempts
"""

from uuid import UUID

from fastapi import APIRouter

from src.auth.dependencies import CurrentUser
from src.progress.schemas import QuizAttemptResponse

from .dependencies import QuizServiceDep
from .schemas import (
    QuizAttemptListResponse,
    QuizResponse,
    QuizSubmissionResponse,
    SubmitQuizRequest,
)


router = APIRouter(
    prefix="/v1/courses/{course_id}/modules/{module_id}/quiz", tags=["quizzes"]
)


@router.get(
    "",
    response_model=QuizResponse,
    summary="Get module quiz",
)
async def get_quiz(
    course_id: UUID,
    module_id: UUID,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizResponse:
    """Get the quiz for a module.

    Students see questions without the correct answers.
    """
    quiz, include_answers = await quiz_service.get_quiz_for_module(
        user, course_id, module_id
    )
    return QuizResponse.from_entity(quiz, include_answers=include_answers)


@router.post(
    "/submit",
    response_model=QuizSubmissionResponse,
    summary="Submit quiz answers",
)
async def submit_quiz(
    course_id: UUID,
    module_id: UUID,
    data: SubmitQuizRequest,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizSubmissionResponse:
    """Grade a submission and update module progress.

    Every question needs an answer; a blank one is rejected with
    ``incomplete_submission`` and nothing is recorded.
    """
    submission = await quiz_service.submit_quiz(
        user, course_id, module_id, data.answers
    )
    return QuizSubmissionResponse.from_submission(submission)


@router.get(
    "/attempts",
    response_model=QuizAttemptListResponse,
    summary="List my attempts",
)
async def list_attempts(
    course_id: UUID,
    module_id: UUID,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizAttemptListResponse:
    """List the current student's attempts on this quiz, oldest first."""
    attempts = await quiz_service.list_quiz_attempts(user, course_id, module_id)
    return QuizAttemptListResponse(
        attempts=[QuizAttemptResponse.from_entity(a) for a in attempts],
        total=len(attempts),
    )
