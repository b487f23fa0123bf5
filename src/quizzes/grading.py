"""Quiz grading.

Point-weighted multiple choice: each question awards its points when the
selected option is the correct one, nothing otherwise. Grading is pure; the
attempt history is kept by the progress tracker.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from src.catalog.models import QuizDefinition
from src.progress.aggregator import percentage
from src.progress.errors import (
    IncompleteSubmission,
    InvalidAnswer,
    InvalidQuizDefinition,
)
from src.progress.models import QuestionOutcome


@dataclass(frozen=True)
class GradedAttempt:
    """Score, pass flag and per-question outcomes of one submission."""

    score: Decimal
    passed: bool
    awarded_points: int
    total_points: int
    outcomes: list[QuestionOutcome] = field(default_factory=list)


def grade(quiz: QuizDefinition, answers: Sequence[int | None]) -> GradedAttempt:
    """Score a submission against a quiz.

    Args:
        quiz: Quiz definition (questions, points, passing score)
        answers: One selected option index per question, in question order

    Returns:
        GradedAttempt with score rounded half-up to one decimal place

    Raises:
        InvalidQuizDefinition: Quiz has no questions, no achievable points,
            a negative point value or a question without options
        IncompleteSubmission: Answer count differs or a question is unanswered
        InvalidAnswer: Selected index is not one of the question's options
    """
    if not quiz.questions:
        raise InvalidQuizDefinition("Quiz has no questions")
    total_points = quiz.total_points
    if total_points <= 0:
        raise InvalidQuizDefinition("Quiz has no achievable points")
    for index, question in enumerate(quiz.questions):
        if question.points < 0:
            raise InvalidQuizDefinition(f"Question {index + 1} has negative points")
        if not question.options:
            raise InvalidQuizDefinition(f"Question {index + 1} has no options")

    if len(answers) != len(quiz.questions):
        raise IncompleteSubmission(
            f"Expected {len(quiz.questions)} answers, got {len(answers)}"
        )
    unanswered = [i for i, selected in enumerate(answers) if selected is None]
    if unanswered:
        raise IncompleteSubmission(
            f"Unanswered questions: {', '.join(str(i + 1) for i in unanswered)}"
        )

    awarded = 0
    outcomes: list[QuestionOutcome] = []
    for index, (question, selected) in enumerate(zip(quiz.questions, answers)):
        if not 0 <= selected < len(question.options):
            raise InvalidAnswer(f"Question {index + 1} has no option {selected}")
        is_correct = selected == question.correct_index
        if is_correct:
            awarded += question.points
        outcomes.append(
            QuestionOutcome(
                question_index=index,
                selected_index=selected,
                is_correct=is_correct,
            )
        )

    score = percentage(awarded, total_points)
    return GradedAttempt(
        score=score,
        passed=score >= quiz.passing_score,
        awarded_points=awarded,
        total_points=total_points,
        outcomes=outcomes,
    )
