"""Quiz grading and submission."""

from src.quizzes.grading import GradedAttempt, grade


__all__ = ["GradedAttempt", "grade"]
