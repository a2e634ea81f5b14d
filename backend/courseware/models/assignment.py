"""Assignment model."""

from sqlalchemy import Boolean, Column, String, Text, DateTime, ForeignKey, Integer, JSON, Float
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from ..database import Base
from ..content import calculate_assignment_points


class Assignment(Base):
    """Assignment model. ``content`` holds the serialized block document."""
    __tablename__ = "assignments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="New Assignment")
    content = Column(Text, default="")
    settings = Column(JSON, default=dict)
    module_path = Column(JSON, default=list)
    order = Column(Float, nullable=False, default=0.0)
    published = Column(Boolean, default=False)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    course = relationship("Course", back_populates="assignments")
    submissions = relationship("Submission", back_populates="assignment", cascade="all, delete-orphan")
    rubric_schema = relationship("RubricSchema", back_populates="assignment", uselist=False,
                                 cascade="all, delete-orphan")
    chat_sessions = relationship("ChatSession", back_populates="assignment", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Assignment(id={self.id}, name='{self.name}')>"

    @property
    def total_points(self) -> float:
        """Sum of points over every MCQ block in the content."""
        return calculate_assignment_points(self.content)

    @property
    def submission_count(self):
        """Get count of submissions for this assignment."""
        return len(self.submissions)
