"""Tests for the authentication system."""
import pytest
from fastapi import status

from courseware.auth.schemas import UserCreate
from courseware.auth.service import AuthService, get_user_from_token, require_course_role
from courseware.errors import AuthenticationError, AuthorizationError, ConflictError
from courseware.models import CourseRole

from conftest import TEST_PASSWORD


NEW_USER = {
    "email": "newuser@example.com",
    "password": "NewPass123!",
    "full_name": "New User",
}


@pytest.fixture
def auth_service(db_session):
    return AuthService(db_session)


def test_register_user(client):
    """Test user registration."""
    response = client.post("/auth/register", json=NEW_USER)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert "id" in data
    assert data["email"] == NEW_USER["email"]
    assert data["is_admin"] is False
    assert "hashed_password" not in data  # Password should not be returned

    # Test duplicate email
    response = client.post("/auth/register", json=NEW_USER)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"]["message"] == "Email already registered"


def test_register_rejects_weak_password(client):
    response = client.post("/auth/register", json={**NEW_USER, "password": "password1"})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["path"] == "/auth/register"
    assert body["requestId"]


def test_login(client, instructor):
    """Test user login and token generation."""
    response = client.post(
        "/auth/login",
        data={"username": instructor.email, "password": TEST_PASSWORD},
        headers={"content-type": "application/x-www-form-urlencoded"}
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"

    # Test invalid credentials
    response = client.post(
        "/auth/login",
        data={"username": instructor.email, "password": "wrongpassword"},
        headers={"content-type": "application/x-www-form-urlencoded"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error"]["message"] == "Incorrect email or password"


def test_me(client, instructor, instructor_headers):
    response = client.get("/auth/me", headers=instructor_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["email"] == instructor.email


def test_me_requires_valid_token(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["www-authenticate"] == "Bearer"


def test_change_password(client, instructor, instructor_headers):
    response = client.post(
        "/auth/change-password",
        json={"current_password": "wrong", "new_password": "Another123!"},
        headers=instructor_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.post(
        "/auth/change-password",
        json={"current_password": TEST_PASSWORD, "new_password": "Another123!"},
        headers=instructor_headers,
    )
    assert response.status_code == status.HTTP_204_NO_CONTENT

    response = client.post("/auth/login", data={"username": instructor.email, "password": "Another123!"})
    assert response.status_code == status.HTTP_200_OK


class TestAuthService:

    def test_register_duplicate(self, auth_service):
        auth_service.register_user(UserCreate(**NEW_USER))
        with pytest.raises(ConflictError):
            auth_service.register_user(UserCreate(**NEW_USER))

    def test_token_round_trip(self, auth_service, db_session, student):
        token = auth_service.create_token_for_user(student)
        data = auth_service.verify_token(token)

        assert data.email == student.email
        assert data.user_id == student.id
        assert get_user_from_token(token, db_session).id == student.id

    def test_missing_token(self, db_session):
        with pytest.raises(AuthenticationError):
            get_user_from_token(None, db_session)

    def test_require_course_role(self, db_session, course, instructor, student, outsider):
        assert require_course_role(db_session, instructor, course.id, [CourseRole.instructor]).role == CourseRole.instructor

        with pytest.raises(AuthorizationError, match="Insufficient permissions"):
            require_course_role(db_session, student, course.id, [CourseRole.instructor, CourseRole.ta])
        with pytest.raises(AuthorizationError, match="You are not enrolled in this course"):
            require_course_role(db_session, outsider, course.id)

    def test_admin_passes_role_checks(self, db_session, course):
        from conftest import make_user
        admin = make_user(db_session, "admin@example.com", is_admin=True)

        assert require_course_role(db_session, admin, course.id, [CourseRole.instructor]) is None
