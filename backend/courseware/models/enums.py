"""Shared enums for models and services."""
import enum


class CourseRole(enum.Enum):
    instructor = "instructor"
    ta = "ta"
    student = "student"


class SubmissionStatus(enum.Enum):
    in_progress = "in-progress"
    submitted = "submitted"
    graded = "graded"
    returned = "returned"


def enum_values(enum_cls):
    """Persist enum values (e.g. "in-progress") rather than member names."""
    return [member.value for member in enum_cls]
