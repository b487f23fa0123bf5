"""Read-only view of courses, modules and quizzes."""

from src.catalog.models import Course, CourseModule, QuizDefinition, QuizQuestion
from src.catalog.service import CatalogReader, CatalogService


__all__ = [
    "CatalogReader",
    "CatalogService",
    "Course",
    "CourseModule",
    "QuizDefinition",
    "QuizQuestion",
]
