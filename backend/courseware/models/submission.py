"""Submission model."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SQLEnum, Integer, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from ..database import Base
from .enums import SubmissionStatus, enum_values


class Submission(Base):
    """A student's answers to one assignment.

    ``values`` maps block ids to the student's answer; for MCQ blocks the
    answer is the list of selected option ids.
    """
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    assignment_id = Column(String(36), ForeignKey("assignments.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False)
    values = Column(JSON, default=dict)
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=enum_values),
        nullable=False,
        default=SubmissionStatus.in_progress,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("User", back_populates="submissions")
    grader = relationship("Grader", back_populates="submission", uselist=False, cascade="all, delete-orphan")
    rubric = relationship("Rubric", back_populates="submission", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Submission(id={self.id}, student_id={self.student_id}, status={self.status.value})>"

    @property
    def is_in_progress(self):
        """Check if the student is still working on the submission."""
        return self.status == SubmissionStatus.in_progress

    @property
    def is_graded(self):
        """Check if submission has been graded or returned."""
        return self.status in (SubmissionStatus.graded, SubmissionStatus.returned)

    def get_answer(self, block_id: str, default=None):
        """Get the stored answer for a block."""
        if not self.values:
            return default
        return self.values.get(block_id, default)
