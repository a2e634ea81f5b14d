"""Single-flight creation of a student's grader."""
import logging
from typing import Any, Dict, Optional

from .api import CoursewareClient

logger = logging.getLogger(__name__)


class GraderCreationInProgress(RuntimeError):
    def __init__(self):
        super().__init__("Grader creation already in progress")


class GraderEnsurer:
    """Returns the known grader or creates it, with at most one request in flight.

    A call made while a creation is running raises
    :class:`GraderCreationInProgress` instead of sending a second request.
    """

    def __init__(self, client: CoursewareClient, assignment_id: str, student_id: int,
                 grader: Optional[Dict[str, Any]] = None):
        self.client = client
        self.assignment_id = assignment_id
        self.student_id = student_id
        self.grader = grader
        self.creating = False
        self.error: Optional[Exception] = None

    async def ensure(self) -> Dict[str, Any]:
        if self.grader is not None:
            return self.grader
        if self.creating:
            raise GraderCreationInProgress()

        self.creating = True
        self.error = None
        try:
            self.grader = await self.client.ensure_grader(self.assignment_id, self.student_id)
        except Exception as e:
            logger.error(f"Creating grader for student {self.student_id} on {self.assignment_id} failed: {e}")
            self.error = e
            raise
        finally:
            self.creating = False
        return self.grader
