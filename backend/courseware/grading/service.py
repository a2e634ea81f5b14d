"""Grading service: graders, rubrics and the course gradebook."""
import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.service import require_author, require_course_role
from ..errors import NotFoundError, ValidationError
from ..models import (
    Assignment, Course, CourseRole, Enrollment, Grader, Rubric, RubricSchema, Submission,
    SubmissionStatus, User,
)
from ..submissions.status import NOT_STARTED, submission_status
from .schemas import GraderUpdate, RubricSchemaSave
from .scores import rubric_score

logger = logging.getLogger(__name__)


class GradingService:
    def __init__(self, db: Session):
        self.db = db

    def _submission_for_author(self, submission_id: str, user: User) -> Submission:
        submission = self.db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission")
        require_author(self.db, user, submission.course_id)
        return submission

    def _assignment_for_author(self, assignment_id: str, user: User) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment")
        require_author(self.db, user, assignment.course_id)
        return assignment

    # Graders

    def get_grader(self, submission_id: str, user: User) -> Grader:
        submission = self._submission_for_author(submission_id, user)
        if submission.grader is None:
            raise NotFoundError("Grader")
        return submission.grader

    def update_grader(self, submission_id: str, data: GraderUpdate, user: User) -> Grader:
        """Apply a partial update to a grader.

        ``reviewed`` maps onto ``reviewed_at``: true stamps the current time,
        false clears it.
        """
        grader = self.get_grader(submission_id, user)
        if data.feedback is not None:
            grader.feedback = data.feedback
        if data.score_modifier is not None:
            grader.score_modifier = data.score_modifier
        if data.reviewed is not None:
            if data.reviewed:
                grader.reviewed_at = datetime.now(UTC)
                grader.reviewed_by = user.id
            else:
                grader.reviewed_at = None
                grader.reviewed_by = None
        self.db.commit()
        self.db.refresh(grader)
        return grader

    def ensure_grader(self, assignment_id: str, student_id: int, user: User) -> Grader:
        """Get or create the student's submission and its grader.

        Safe to call repeatedly: a unique-constraint race falls back to the
        row the other request created.
        """
        assignment = self._assignment_for_author(assignment_id, user)
        enrollment = self.db.query(Enrollment).filter(
            Enrollment.user_id == student_id,
            Enrollment.course_id == assignment.course_id,
            Enrollment.role == CourseRole.student,
        ).first()
        if enrollment is None:
            raise NotFoundError("Student")

        submission = self._get_or_create_submission(assignment, student_id)
        if submission.grader is not None:
            return submission.grader

        grader = Grader(
            submission_id=submission.id,
            feedback="",
            raw_assignment_score=0.0,
            raw_rubric_score=0.0,
            score_modifier="0",
            block_scores={},
        )
        self.db.add(grader)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Grader for submission {submission.id} was created concurrently")
            grader = self.db.query(Grader).filter(Grader.submission_id == submission.id).one()
        self.db.refresh(grader)
        return grader

    def _get_or_create_submission(self, assignment: Assignment, student_id: int) -> Submission:
        submission = self.db.query(Submission).filter(
            Submission.assignment_id == assignment.id,
            Submission.student_id == student_id,
        ).first()
        if submission is not None:
            return submission

        submission = Submission(
            assignment_id=assignment.id,
            student_id=student_id,
            course_id=assignment.course_id,
            values={},
            status=SubmissionStatus.in_progress,
        )
        self.db.add(submission)
        self.db.commit()
        self.db.refresh(submission)
        logger.info(f"Created submission {submission.id} for student {student_id} to hold a grader")
        return submission

    # Rubrics

    def get_rubric_schema(self, assignment_id: str, user: User) -> RubricSchema:
        assignment = self._assignment_for_author(assignment_id, user)
        if assignment.rubric_schema is None:
            raise NotFoundError("Rubric schema")
        return assignment.rubric_schema

    def save_rubric_schema(self, assignment_id: str, data: RubricSchemaSave, user: User) -> RubricSchema:
        assignment = self._assignment_for_author(assignment_id, user)
        schema = assignment.rubric_schema
        if schema is None:
            schema = RubricSchema(assignment_id=assignment.id)
            self.db.add(schema)
        schema.title = data.title
        schema.use_for_grading = data.use_for_grading
        schema.items = [item.model_dump(exclude_none=True) for item in data.items]

        valid, message = schema.validate_items()
        if not valid:
            self.db.rollback()
            raise ValidationError(message)

        self.db.commit()
        self.db.refresh(schema)
        return schema

    def delete_rubric_schema(self, assignment_id: str, user: User) -> None:
        schema = self.get_rubric_schema(assignment_id, user)
        for rubric in list(schema.rubrics):
            if rubric.submission.grader is not None:
                rubric.submission.grader.raw_rubric_score = 0.0
        self.db.delete(schema)
        self.db.commit()

    def get_rubric(self, submission_id: str, user: User) -> Rubric:
        submission = self._submission_for_author(submission_id, user)
        if submission.rubric is None:
            raise NotFoundError("Rubric")
        return submission.rubric

    def save_rubric(self, submission_id: str, values: List[float], user: User) -> Rubric:
        """Record rubric points and recompute the grader's rubric score."""
        submission = self._submission_for_author(submission_id, user)
        schema = submission.assignment.rubric_schema
        if schema is None:
            raise NotFoundError("Rubric schema")

        items = schema.items or []
        if len(values) != len(items):
            raise ValidationError(f"Expected {len(items)} rubric values, got {len(values)}")
        for index, (value, item) in enumerate(zip(values, items)):
            if value < 0 or value > item.get("points", 0):
                raise ValidationError(f"Rubric value {index} must be between 0 and {item.get('points', 0)}")

        rubric = submission.rubric
        if rubric is None:
            rubric = Rubric(submission_id=submission.id, rubric_schema_id=schema.id)
            self.db.add(rubric)
            submission.rubric = rubric
        rubric.rubric_schema_id = schema.id
        rubric.values = list(values)

        grader = submission.grader or self.ensure_grader(submission.assignment_id, submission.student_id, user)
        grader.raw_rubric_score = rubric_score(values) if schema.use_for_grading else 0.0

        self.db.commit()
        self.db.refresh(rubric)
        return rubric

    # Gradebook

    def _students(self, course_id: str) -> List[User]:
        return (
            self.db.query(User)
            .join(Enrollment, Enrollment.user_id == User.id)
            .filter(Enrollment.course_id == course_id, Enrollment.role == CourseRole.student)
            .order_by(User.full_name, User.email)
            .all()
        )

    def _row(self, student: User, assignments: List[Assignment],
             submissions: Dict[tuple, Submission], reviewed_only: bool) -> Dict[str, Any]:
        cells = []
        earned = 0.0
        possible = 0.0
        for assignment in assignments:
            total_points = assignment.total_points
            submission = submissions.get((student.id, assignment.id))
            grade: Optional[float] = None
            if submission is None:
                display = NOT_STARTED
            else:
                grader = submission.grader
                display = submission_status(submission.status, grader is not None)
                if grader is not None and (grader.is_reviewed or not reviewed_only):
                    grade = grader.final_grade
            if grade is not None:
                earned += grade
                possible += total_points
            cells.append({
                "assignment_id": assignment.id,
                "submission_id": submission.id if submission else None,
                "status_label": display.label,
                "status_variant": display.variant,
                "final_grade": grade,
                "total_points": total_points,
            })
        return {
            "student_id": student.id,
            "student_name": student.full_name,
            "student_email": student.email,
            "cells": cells,
            "total_earned": earned,
            "total_possible": possible,
        }

    def _course_data(self, course_id: str, published_only: bool):
        query = self.db.query(Assignment).filter(Assignment.course_id == course_id)
        if published_only:
            query = query.filter(Assignment.published.is_(True))
        assignments = query.order_by(Assignment.order).all()
        submissions = {
            (s.student_id, s.assignment_id): s
            for s in self.db.query(Submission).filter(Submission.course_id == course_id).all()
        }
        return assignments, submissions

    @staticmethod
    def _assignment_columns(assignments: List[Assignment]) -> List[Dict[str, Any]]:
        return [
            {"id": a.id, "name": a.name, "total_points": a.total_points, "published": a.published}
            for a in assignments
        ]

    def gradebook(self, course_id: str, user: User) -> Dict[str, Any]:
        """Students by assignments with status and final grade per cell."""
        if self.db.get(Course, course_id) is None:
            raise NotFoundError("Course")
        require_author(self.db, user, course_id)

        assignments, submissions = self._course_data(course_id, published_only=False)
        rows = [self._row(student, assignments, submissions, reviewed_only=False)
                for student in self._students(course_id)]
        return {"course_id": course_id, "assignments": self._assignment_columns(assignments), "rows": rows}

    def student_grades(self, course_id: str, user: User) -> Dict[str, Any]:
        """The current student's own gradebook row; grades appear once reviewed."""
        if self.db.get(Course, course_id) is None:
            raise NotFoundError("Course")
        require_course_role(self.db, user, course_id, [CourseRole.student])

        assignments, submissions = self._course_data(course_id, published_only=True)
        row = self._row(user, assignments, submissions, reviewed_only=True)
        return {"course_id": course_id, "assignments": self._assignment_columns(assignments), "rows": [row]}
