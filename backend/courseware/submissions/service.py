"""Submission service: saving answers, submitting and per-block answer checks."""
import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..auth.service import require_author, require_course_role
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..grading.autograder import autograde_submission, scoring_blocks
from ..models import Assignment, CourseRole, Enrollment, Submission, SubmissionStatus, User
from .status import NOT_STARTED, submission_status

logger = logging.getLogger(__name__)


class SubmissionService:
    def __init__(self, db: Session):
        self.db = db

    def _published_assignment(self, assignment_id: str, user: User) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None or not assignment.published:
            raise NotFoundError("Assignment")
        require_course_role(self.db, user, assignment.course_id, [CourseRole.student])
        return assignment

    def _find(self, assignment_id: str, student_id: int) -> Optional[Submission]:
        return self.db.query(Submission).filter(
            Submission.assignment_id == assignment_id,
            Submission.student_id == student_id,
        ).first()

    def get_own(self, assignment_id: str, user: User) -> Optional[Submission]:
        self._published_assignment(assignment_id, user)
        return self._find(assignment_id, user.id)

    def get_submission(self, submission_id: str, user: User) -> Submission:
        """A submission visible to its student or to the course's authors."""
        submission = self.db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission")
        if submission.student_id != user.id:
            require_author(self.db, user, submission.course_id)
        return submission

    def save_answers(self, assignment_id: str, values: Dict[str, List[str]], user: User) -> Submission:
        """Store in-progress answers, starting the submission if needed."""
        assignment = self._published_assignment(assignment_id, user)
        submission = self._find(assignment_id, user.id)
        if submission is None:
            submission = Submission(
                assignment_id=assignment.id,
                student_id=user.id,
                course_id=assignment.course_id,
                values={},
                status=SubmissionStatus.in_progress,
            )
            self.db.add(submission)
        elif not submission.is_in_progress:
            raise ConflictError("Submission has already been submitted")

        submission.values = dict(values)
        self.db.commit()
        self.db.refresh(submission)
        return submission

    def submit(self, assignment_id: str, values: Optional[Dict[str, List[str]]], user: User) -> Submission:
        """Finalize a submission and run the autograder on it."""
        if values is not None:
            submission = self.save_answers(assignment_id, values, user)
        else:
            self._published_assignment(assignment_id, user)
            submission = self._find(assignment_id, user.id)
            if submission is None:
                raise ValidationError("Nothing to submit, no answers have been saved")
            if not submission.is_in_progress:
                raise ConflictError("Submission has already been submitted")

        submission.status = SubmissionStatus.submitted
        submission.submitted_at = datetime.now(UTC)
        self.db.commit()
        logger.info(f"User {user.id} submitted assignment {assignment_id}")

        autograde_submission(self.db, submission)
        self.db.refresh(submission)
        return submission

    def check_answer(self, assignment_id: str, block_id: str, selected: List[str], user: User) -> Dict[str, Any]:
        """Tell a student whether a selection is right, for blocks that allow it."""
        assignment = self._published_assignment(assignment_id, user)
        block = next((b for b in scoring_blocks(assignment.content) if b.id == block_id), None)
        if block is None:
            raise NotFoundError("Block")
        if not block.allow_check_answer:
            raise AuthorizationError("Answer checking is disabled for this question")
        correct_ids = set(block.correct_option_ids)
        correct = bool(correct_ids) and set(selected) == correct_ids
        return {"block_id": block.id, "correct": correct, "explanation": block.explanation if correct else ""}

    def list_for_assignment(self, assignment_id: str, user: User) -> List[Dict[str, Any]]:
        """Every enrolled student with their submission state for an assignment."""
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment")
        require_author(self.db, user, assignment.course_id)

        students = (
            self.db.query(User)
            .join(Enrollment, Enrollment.user_id == User.id)
            .filter(Enrollment.course_id == assignment.course_id, Enrollment.role == CourseRole.student)
            .order_by(User.full_name, User.email)
            .all()
        )
        by_student = {s.student_id: s for s in assignment.submissions}

        rows = []
        for student in students:
            submission = by_student.get(student.id)
            display = submission_status(submission.status, submission.grader is not None) if submission else NOT_STARTED
            rows.append({
                "student_id": student.id,
                "student_name": student.full_name,
                "student_email": student.email,
                "submission_id": submission.id if submission else None,
                "status_label": display.label,
                "status_variant": display.variant,
                "submitted_at": submission.submitted_at if submission else None,
                "final_grade": submission.grader.final_grade if submission and submission.grader else None,
            })
        return rows


def submission_payload(submission: Submission) -> Dict[str, Any]:
    display = submission_status(submission.status, submission.grader is not None)
    return {
        "id": submission.id,
        "assignment_id": submission.assignment_id,
        "student_id": submission.student_id,
        "values": submission.values or {},
        "status": submission.status.value,
        "status_label": display.label,
        "status_variant": display.variant,
        "submitted_at": submission.submitted_at,
        "updated_at": submission.updated_at,
    }
