"""Display status of a student's submission."""
from typing import NamedTuple, Optional, Union

from ..models import SubmissionStatus


class StatusDisplay(NamedTuple):
    label: str
    variant: str


NOT_STARTED = StatusDisplay("Not Started", "not-started")
IN_PROGRESS = StatusDisplay("In Progress", "in-progress")
SUBMITTED = StatusDisplay("Submitted", "submitted")
GRADED = StatusDisplay("Submitted", "graded")


def submission_status(status: Optional[Union[SubmissionStatus, str]], has_grader: bool = False) -> StatusDisplay:
    """Label and badge variant for a submission status.

    A submitted submission that already has a grader shows as graded.
    Unknown values fall back to not started.
    """
    if status is None:
        return NOT_STARTED
    try:
        status = SubmissionStatus(status)
    except ValueError:
        return NOT_STARTED

    if status == SubmissionStatus.in_progress:
        return IN_PROGRESS
    if status == SubmissionStatus.submitted:
        return GRADED if has_grader else SUBMITTED
    return GRADED
