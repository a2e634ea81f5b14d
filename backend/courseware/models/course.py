"""Course and Enrollment models."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SQLEnum, Integer, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from ..database import Base
from .enums import CourseRole, enum_values


class Course(Base):
    """Course model."""
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    settings = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")
    assignments = relationship("Assignment", back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course(id={self.id}, name='{self.name}')>"

    @property
    def memory_enabled(self) -> bool:
        """Whether the assistant may persist course memories (on unless disabled)."""
        return (self.settings or {}).get("ai_memory_enabled") is not False

    def memory_budget(self, default: int) -> int:
        return (self.settings or {}).get("ai_memory_max_chars", default)


class Enrollment(Base):
    """A user's role in a course."""
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False)
    role = Column(SQLEnum(CourseRole, values_callable=enum_values), nullable=False)
    enrolled_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")

    def __repr__(self):
        return f"<Enrollment(user_id={self.user_id}, course_id={self.course_id}, role={self.role.value})>"

    @property
    def can_author(self) -> bool:
        """Instructors and TAs author content, grade and use the assistant."""
        return self.role in (CourseRole.instructor, CourseRole.ta)
