"""Caller roles as issued by the identity service.

- STUDENT: enrolls in courses, reports progress, submits quizzes
- INSTRUCTOR: owns courses; reads membership of own courses
- ADMIN: reads everything, never enrolls
"""

from enum import Enum


class UserRole(str, Enum):
    """Caller roles carried in the access token."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


def parse_role(role: "UserRole | str") -> UserRole | None:
    """Normalize a role claim, returning None for unknown values."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return parse_role(role) is UserRole.ADMIN


def is_instructor(role: UserRole | str) -> bool:
    """Check if role is INSTRUCTOR."""
    return parse_role(role) is UserRole.INSTRUCTOR


def is_student(role: UserRole | str) -> bool:
    """Check if role is STUDENT."""
    return parse_role(role) is UserRole.STUDENT


def can_enroll(role: UserRole | str) -> bool:
    """Only students enroll, report progress or submit quizzes."""
    return is_student(role)


def can_view_course_roster(
    role: UserRole | str,
    caller_id: object,
    course_instructor_id: object | None,
) -> bool:
    """Admins see every roster; instructors only their own course's.

    Examples:
        >>> can_view_course_roster("admin", 1, 2)
        True
        >>> can_view_course_roster("instructor", 1, 2)
        False
    """
    if is_admin(role):
        return True
    return (
        is_instructor(role)
        and course_instructor_id is not None
        and caller_id == course_instructor_id
    )
