"""Async client for the courseware API with autosave helpers."""

from .api import ApiError, CoursewareClient
from .answers import AnswerStore
from .autosave import ContentAutosave, GradeAutosave
from .debounce import Debouncer
from .ensure_grader import GraderCreationInProgress, GraderEnsurer
from .errors import describe_error

__all__ = [
    "ApiError",
    "CoursewareClient",
    "AnswerStore",
    "ContentAutosave",
    "GradeAutosave",
    "Debouncer",
    "GraderCreationInProgress",
    "GraderEnsurer",
    "describe_error",
]
