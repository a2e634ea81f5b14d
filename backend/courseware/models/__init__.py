"""SQLAlchemy models for the courseware service."""

from .enums import CourseRole, SubmissionStatus
from .user import User
from .course import Course, Enrollment
from .assignment import Assignment
from .submission import Submission
from .grading import Grader, RubricSchema, Rubric
from .chat import ChatSession, ChatMemory

__all__ = [
    "CourseRole",
    "SubmissionStatus",
    "User",
    "Course",
    "Enrollment",
    "Assignment",
    "Submission",
    "Grader",
    "RubricSchema",
    "Rubric",
    "ChatSession",
    "ChatMemory",
]
