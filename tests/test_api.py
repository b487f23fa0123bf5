"""Tests for the HTTP surface: routes, auth and error mapping."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.auth.schemas import CallerIdentity
from src.main import create_app
from src.progress.dependencies import PROGRESS_ERROR_STATUS, progress_error_status
from src.progress.errors import ProgressError


class TestAuth:
    """Tests for token handling."""

    def test_missing_token(self, client: TestClient, course_with_quiz) -> None:
        course, _, _ = course_with_quiz
        response = client.post(f"/v1/courses/{course.id}/enroll")
        assert response.status_code == 401
        assert response.json()["code"] == "http_error"

    def test_garbage_token(self, client: TestClient, course_with_quiz) -> None:
        course, _, _ = course_with_quiz
        response = client.post(
            f"/v1/courses/{course.id}/enroll",
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401


class TestEnrollmentRoutes:
    """Tests for enrollment endpoints."""

    def test_enroll(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        response = client.post(
            f"/v1/courses/{course.id}/enroll", headers=auth_headers(student)
        )
        assert response.status_code == 201
        data = response.json()
        assert data["enrollment"]["course_id"] == str(course.id)
        assert data["progress"]["overall_progress"] == 0.0
        assert [m["module_id"] for m in data["progress"]["modules"]] == [
            str(m.id) for m in modules
        ]
        assert all(m["status"] == "not_started" for m in data["progress"]["modules"])

    def test_enroll_twice(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] is True
        assert body["code"] == "already_enrolled"
        assert body["status_code"] == 409

    def test_enroll_unpublished(
        self, client: TestClient, catalog, student, auth_headers
    ) -> None:
        draft, _ = catalog.add_course(1, published=False)
        response = client.post(
            f"/v1/courses/{draft.id}/enroll", headers=auth_headers(student)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "course_not_published"

    def test_enroll_unknown_course(
        self, client: TestClient, student, auth_headers
    ) -> None:
        response = client.post(
            f"/v1/courses/{uuid4()}/enroll", headers=auth_headers(student)
        )
        assert response.status_code == 404
        assert response.json()["code"] == "course_not_found"

    def test_instructor_cannot_enroll(
        self, client: TestClient, course_with_quiz, instructor, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        response = client.post(
            f"/v1/courses/{course.id}/enroll", headers=auth_headers(instructor)
        )
        assert response.status_code == 403
        assert response.json()["code"] == "not_eligible"

    def test_status_and_unenroll(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        status_response = client.get(
            f"/v1/courses/{course.id}/enrollment", headers=headers
        )
        assert status_response.json() == {
            "course_id": str(course.id),
            "enrolled": True,
        }

        response = client.delete(f"/v1/courses/{course.id}/enroll", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Unenrolled from course"}

        response = client.delete(f"/v1/courses/{course.id}/enroll", headers=headers)
        assert response.status_code == 404
        assert response.json()["code"] == "not_enrolled"

    def test_my_enrollments(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.get("/v1/enrollments/my", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["enrollments"][0]["course_id"] == str(course.id)
        assert data["enrollments"][0]["overall_progress"] == 0.0

    def test_course_students(
        self, client: TestClient, course_with_quiz, student, instructor, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        client.post(f"/v1/courses/{course.id}/enroll", headers=auth_headers(student))

        response = client.get(
            f"/v1/courses/{course.id}/students", headers=auth_headers(instructor)
        )
        assert response.status_code == 200
        assert [s["user_id"] for s in response.json()["students"]] == [
            str(student.id)
        ]

        response = client.get(
            f"/v1/courses/{course.id}/students", headers=auth_headers(student)
        )
        assert response.status_code == 403


class TestProgressRoutes:
    """Tests for progress endpoints."""

    def test_update_and_read(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.put(
            f"/v1/progress/{course.id}/modules/{modules[0].id}",
            json={"percent_complete": 100},
            headers=headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["module"]["status"] == "completed"
        assert data["overall_progress"] == 33.3
        assert data["completed_at"] is None

        response = client.get(f"/v1/progress/{course.id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["overall_progress"] == 33.3

    def test_out_of_range(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.put(
            f"/v1/progress/{course.id}/modules/{modules[0].id}",
            json={"percent_complete": 150},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_progress_value"

    def test_missing_body_field(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        response = client.put(
            f"/v1/progress/{course.id}/modules/{modules[0].id}",
            json={},
            headers=auth_headers(student),
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "invalid_request"
        assert body["details"]

    def test_unknown_module(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.put(
            f"/v1/progress/{course.id}/modules/{uuid4()}",
            json={"percent_complete": 10},
            headers=headers,
        )
        assert response.status_code == 404
        assert response.json()["code"] == "module_not_found"

    def test_not_enrolled(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, _, _ = course_with_quiz
        response = client.get(
            f"/v1/progress/{course.id}", headers=auth_headers(student)
        )
        assert response.status_code == 404
        assert response.json()["code"] == "not_enrolled"

    def test_write_conflict_is_503(
        self, client: TestClient, store, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)
        store.cas_failures = 5

        response = client.put(
            f"/v1/progress/{course.id}/modules/{modules[0].id}",
            json={"percent_complete": 50},
            headers=headers,
        )
        assert response.status_code == 503
        assert response.json()["code"] == "progress_write_conflict"


class TestQuizRoutes:
    """Tests for quiz endpoints."""

    def test_student_quiz_hides_answers(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.get(
            f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz", headers=headers
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["questions"]) == 5
        assert all(q["correct_answer"] is None for q in data["questions"])
        assert data["passing_score"] == 70

    def test_instructor_quiz_shows_answers(
        self, client: TestClient, course_with_quiz, instructor, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        response = client.get(
            f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz",
            headers=auth_headers(instructor),
        )
        assert response.status_code == 200
        assert all(q["correct_answer"] == 0 for q in response.json()["questions"])

    def test_submit_and_list(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        base = f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz"
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.post(
            f"{base}/submit", json={"answers": [0, 0, 0, 1, 1]}, headers=headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 60.0
        assert data["passed"] is False
        assert data["module"]["status"] == "in_progress"
        assert len(data["outcomes"]) == 5

        response = client.post(
            f"{base}/submit", json={"answers": [0, 0, 0, 0, 0]}, headers=headers
        )
        data = response.json()
        assert data["passed"] is True
        assert data["module"]["status"] == "completed"
        assert data["overall_progress"] == 33.3

        response = client.get(f"{base}/attempts", headers=headers)
        assert response.status_code == 200
        listing = response.json()
        assert listing["total"] == 2
        assert [a["score"] for a in listing["attempts"]] == [60.0, 100.0]

    def test_incomplete_submission(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.post(
            f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz/submit",
            json={"answers": [0, None, 0, 0, 0]},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "incomplete_submission"

    def test_invalid_answer(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.post(
            f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz/submit",
            json={"answers": [0, 0, 0, 0, 9]},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_answer"

    def test_boolean_answers_rejected(
        self, client: TestClient, course_with_quiz, student, auth_headers
    ) -> None:
        """Booleans are not option indexes."""
        course, modules, _ = course_with_quiz
        headers = auth_headers(student)
        client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

        response = client.post(
            f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz/submit",
            json={"answers": [True, False, True, False, True]},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_request"

        attempts = client.get(
            f"/v1/courses/{course.id}/modules/{modules[1].id}/quiz/attempts",
            headers=headers,
        )
        assert attempts.json()["total"] == 0

    def test_no_quiz(
        self, client: TestClient, course_with_quiz, admin, auth_headers
    ) -> None:
        course, modules, _ = course_with_quiz
        response = client.get(
            f"/v1/courses/{course.id}/modules/{modules[0].id}/quiz",
            headers=auth_headers(admin),
        )
        assert response.status_code == 404
        assert response.json()["code"] == "quiz_not_found"


class TestErrorStatusMap:
    """Tests for the error-code to HTTP status map."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("incomplete_submission", 422),
            ("invalid_answer", 422),
            ("module_not_found", 404),
            ("already_enrolled", 409),
            ("not_eligible", 403),
            ("progress_write_conflict", 503),
        ],
    )
    def test_known_codes(self, code: str, expected: int) -> None:
        assert PROGRESS_ERROR_STATUS[code] == expected

    def test_unknown_code_is_500(self) -> None:
        assert progress_error_status(ProgressError("boom", code="mystery")) == 500


class TestServicesUnavailable:
    """Routes answer 503 when storage never came up."""

    def test_no_services(self, auth_headers) -> None:
        app = create_app(use_lifespan=False)
        client = TestClient(app)
        caller = CallerIdentity(id=uuid4(), role=UserRole.STUDENT)

        response = client.get(f"/v1/progress/{uuid4()}", headers=auth_headers(caller))

        assert response.status_code == 503
