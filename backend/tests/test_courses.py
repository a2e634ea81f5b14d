"""Tests for course and enrollment endpoints."""
from fastapi import status


def test_create_course_makes_creator_instructor(client, instructor, instructor_headers):
    response = client.post("/courses", json={"name": "Data Structures", "slug": "ds-101"}, headers=instructor_headers)
    assert response.status_code == status.HTTP_201_CREATED
    course_id = response.json()["id"]

    response = client.get(f"/courses/{course_id}/enrollments", headers=instructor_headers)
    assert response.status_code == status.HTTP_200_OK
    enrollments = response.json()
    assert len(enrollments) == 1
    assert enrollments[0]["user_id"] == instructor.id
    assert enrollments[0]["role"] == "instructor"


def test_duplicate_slug_conflicts(client, course, instructor_headers):
    response = client.post("/courses", json={"name": "Again", "slug": course.slug}, headers=instructor_headers)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"]["code"] == "CONFLICT_ERROR"


def test_invalid_slug_rejected(client, instructor_headers):
    response = client.post("/courses", json={"name": "Bad", "slug": "Has Spaces"}, headers=instructor_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_list_courses_only_shows_enrolled(client, course, outsider, auth_headers, student_headers):
    response = client.get("/courses", headers=student_headers)
    assert [c["id"] for c in response.json()] == [course.id]

    response = client.get("/courses", headers=auth_headers(outsider))
    assert response.json() == []

    response = client.get(f"/courses/{course.id}", headers=auth_headers(outsider))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_update_memory_settings(client, course, instructor_headers, student_headers):
    response = client.patch(
        f"/courses/{course.id}/settings",
        json={"ai_memory_enabled": False, "ai_memory_max_chars": 1000},
        headers=instructor_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["settings"] == {"ai_memory_enabled": False, "ai_memory_max_chars": 1000}

    response = client.patch(f"/courses/{course.id}/settings", json={"ai_memory_enabled": True}, headers=student_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_enroll_by_email_and_change_role(client, course, outsider, instructor_headers):
    response = client.post(
        f"/courses/{course.id}/enrollments",
        json={"email": outsider.email, "role": "student"},
        headers=instructor_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["role"] == "student"

    response = client.post(
        f"/courses/{course.id}/enrollments",
        json={"email": outsider.email, "role": "ta"},
        headers=instructor_headers,
    )
    assert response.json()["role"] == "ta"

    response = client.get(f"/courses/{course.id}/enrollments", headers=instructor_headers)
    roles = {e["user_id"]: e["role"] for e in response.json()}
    assert roles[outsider.id] == "ta"


def test_enroll_unknown_user(client, course, instructor_headers):
    response = client.post(
        f"/courses/{course.id}/enrollments",
        json={"email": "nobody@example.com"},
        headers=instructor_headers,
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["message"] == "User not found"
