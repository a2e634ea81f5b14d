"""Grader, RubricSchema and Rubric models."""

from sqlalchemy import Boolean, Column, String, Text, DateTime, ForeignKey, Integer, JSON, Float
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from ..database import Base
from ..grading.scores import final_grade


class Grader(Base):
    """Scores, feedback and review status for one submission."""
    __tablename__ = "graders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(String(36), ForeignKey("submissions.id"), unique=True, nullable=False)
    feedback = Column(Text, default="")
    raw_assignment_score = Column(Float, default=0.0)
    raw_rubric_score = Column(Float, default=0.0)
    score_modifier = Column(String(50), default="0")
    block_scores = Column(JSON, default=dict)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    submission = relationship("Submission", back_populates="grader")

    def __repr__(self):
        return f"<Grader(id={self.id}, submission_id={self.submission_id})>"

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None

    @property
    def final_grade(self) -> float:
        """Autograded score plus rubric score plus the numeric modifier."""
        return final_grade(self.raw_assignment_score, self.raw_rubric_score, self.score_modifier)


class RubricSchema(Base):
    """Rubric definition attached to an assignment."""
    __tablename__ = "rubric_schemas"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    assignment_id = Column(String(36), ForeignKey("assignments.id"), unique=True, nullable=False)
    title = Column(String(255), nullable=False, default="Rubric")
    use_for_grading = Column(Boolean, default=True)
    items = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assignment = relationship("Assignment", back_populates="rubric_schema")
    rubrics = relationship("Rubric", back_populates="rubric_schema", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<RubricSchema(id={self.id}, title='{self.title}')>"

    @property
    def total_points(self):
        """Calculate total points for this rubric."""
        if not self.items:
            return 0
        return sum(item.get('points', 0) for item in self.items)

    def validate_items(self):
        """Validate rubric item structure."""
        if not isinstance(self.items, list):
            return False, "Rubric items must be a list"

        for i, item in enumerate(self.items):
            if not isinstance(item, dict):
                return False, f"Item {i} must be a dictionary"
            if not isinstance(item.get('title'), str) or not item['title'].strip():
                return False, f"Item {i} missing required field: title"
            points = item.get('points')
            if isinstance(points, bool) or not isinstance(points, (int, float)):
                return False, f"Item {i} points must be a number"

        return True, "Valid items"


class Rubric(Base):
    """Rubric scores recorded for one submission."""
    __tablename__ = "rubrics"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(String(36), ForeignKey("submissions.id"), unique=True, nullable=False)
    rubric_schema_id = Column(String(36), ForeignKey("rubric_schemas.id"), nullable=False)
    values = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    submission = relationship("Submission", back_populates="rubric")
    rubric_schema = relationship("RubricSchema", back_populates="rubrics")

    def __repr__(self):
        return f"<Rubric(id={self.id}, submission_id={self.submission_id})>"

    @property
    def score(self) -> float:
        return sum(self.values or [])
