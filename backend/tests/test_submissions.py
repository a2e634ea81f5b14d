"""Tests for student submissions and answer checks."""
from fastapi import status

from courseware.content import render_html

from conftest import make_user, enroll, quiz_document


def submission_url(assignment):
    return f"/assignments/{assignment.id}/submission"


def test_no_submission_yet(client, assignment, student_headers):
    response = client.get(submission_url(assignment), headers=student_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() is None


def test_save_answers_starts_submission(client, assignment, student_headers):
    response = client.put(submission_url(assignment), json={"values": {"q1": ["q1-b"]}}, headers=student_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "in-progress"
    assert data["status_label"] == "In Progress"
    assert data["values"] == {"q1": ["q1-b"]}

    response = client.put(submission_url(assignment), json={"values": {"q1": ["q1-a"]}}, headers=student_headers)
    assert response.json()["id"] == data["id"]
    assert response.json()["values"] == {"q1": ["q1-a"]}


def test_instructor_cannot_submit(client, assignment, instructor_headers):
    response = client.put(submission_url(assignment), json={"values": {}}, headers=instructor_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_submit_autogrades(client, db_session, assignment, student_headers):
    response = client.post(
        f"{submission_url(assignment)}/submit",
        json={"values": {"q1": ["q1-a"], "q2": ["q2-b"]}},
        headers=student_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "graded"
    assert data["status_label"] == "Submitted"
    assert data["submitted_at"] is not None

    from courseware.models import Submission
    submission = db_session.get(Submission, data["id"])
    assert submission.grader.raw_assignment_score == 2
    assert submission.grader.block_scores["q2"] == {"awarded": 0, "possible": 3}
    assert submission.grader.is_reviewed is False


def test_submit_without_saved_answers(client, assignment, student_headers):
    response = client.post(f"{submission_url(assignment)}/submit", json={}, headers=student_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"]["message"] == "Nothing to submit, no answers have been saved"


def test_resubmit_conflicts(client, assignment, student_headers):
    client.put(submission_url(assignment), json={"values": {"q1": ["q1-a"]}}, headers=student_headers)
    response = client.post(f"{submission_url(assignment)}/submit", json={}, headers=student_headers)
    assert response.status_code == status.HTTP_200_OK

    response = client.post(f"{submission_url(assignment)}/submit", json={}, headers=student_headers)
    assert response.status_code == status.HTTP_409_CONFLICT

    response = client.put(submission_url(assignment), json={"values": {}}, headers=student_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error"]["message"] == "Submission has already been submitted"


def test_unpublished_assignment_not_found(client, db_session, assignment, student_headers):
    assignment.published = False
    db_session.commit()

    response = client.put(submission_url(assignment), json={"values": {}}, headers=student_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


class TestCheckAnswer:

    def check(self, client, assignment, block_id, selected, headers):
        return client.post(
            f"/assignments/{assignment.id}/blocks/{block_id}/check",
            json={"selected": selected},
            headers=headers,
        )

    def test_correct_and_wrong(self, client, assignment, student_headers):
        response = self.check(client, assignment, "q2", ["q2-a"], student_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"block_id": "q2", "correct": True, "explanation": ""}

        response = self.check(client, assignment, "q2", ["q2-b"], student_headers)
        assert response.json()["correct"] is False

    def test_disabled_for_block(self, client, assignment, student_headers):
        response = self.check(client, assignment, "q1", ["q1-a"], student_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["message"] == "Answer checking is disabled for this question"

    def test_unknown_block(self, client, assignment, student_headers):
        response = self.check(client, assignment, "nope", [], student_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["message"] == "Block not found"


def test_list_submissions(client, db_session, course, assignment, student, instructor_headers, student_headers):
    other = make_user(db_session, "another@example.com", "Zed Student")
    from courseware.models import CourseRole
    enroll(db_session, other, course, CourseRole.student)

    client.post(f"{submission_url(assignment)}/submit", json={"values": {"q1": ["q1-a"]}}, headers=student_headers)

    response = client.get(f"/assignments/{assignment.id}/submissions", headers=instructor_headers)
    assert response.status_code == status.HTTP_200_OK
    rows = response.json()
    assert [r["student_email"] for r in rows] == [student.email, other.email]
    assert rows[0]["status_variant"] == "graded"
    assert rows[0]["final_grade"] == 2
    assert rows[1]["submission_id"] is None
    assert rows[1]["status_label"] == "Not Started"

    response = client.get(f"/assignments/{assignment.id}/submissions", headers=student_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_get_submission_visibility(client, db_session, assignment, outsider, auth_headers, student_headers,
                                   instructor_headers):
    submission_id = client.put(
        submission_url(assignment), json={"values": {}}, headers=student_headers
    ).json()["id"]

    assert client.get(f"/submissions/{submission_id}", headers=student_headers).status_code == status.HTTP_200_OK
    assert client.get(f"/submissions/{submission_id}", headers=instructor_headers).status_code == status.HTTP_200_OK
    assert client.get(
        f"/submissions/{submission_id}", headers=auth_headers(outsider)
    ).status_code == status.HTTP_403_FORBIDDEN


def test_submit_against_legacy_html_content(client, db_session, assignment, student_headers):

    assignment.content = render_html(quiz_document())
    db_session.commit()

    first = client.get(f"/assignments/{assignment.id}", headers=student_headers).json()
    second = client.get(f"/assignments/{assignment.id}", headers=student_headers).json()
    assert first["content"] == second["content"]

    values = {
        block["attrs"]["mcqData"]["id"]: [block["attrs"]["mcqData"]["options"][0]["id"]]
        for block in first["content"]["content"] if block["type"] == "mcqBlock"
    }
    response = client.post(f"{submission_url(assignment)}/submit", json={"values": values}, headers=student_headers)

    assert response.status_code == status.HTTP_200_OK
    from courseware.models import Submission
    submission = db_session.get(Submission, response.json()["id"])
    assert submission.grader.raw_assignment_score == 5
