"""Submission endpoints for students and instructors."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..auth.service import get_current_active_user
from ..database import get_db
from ..errors import CoursewareError
from ..models import User
from .schemas import (
    AnswersSave, CheckAnswerRequest, CheckAnswerResponse, SubmissionResponse, SubmissionSummary, SubmitRequest,
)
from .service import SubmissionService, submission_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Submissions"])


def get_submission_service(db: Session = Depends(get_db)) -> SubmissionService:
    """Dependency to get an instance of SubmissionService."""
    return SubmissionService(db)


@router.get("/assignments/{assignment_id}/submission", response_model=Optional[SubmissionResponse])
async def get_my_submission(
    assignment_id: str,
    current_user: User = Depends(get_current_active_user),
    service: SubmissionService = Depends(get_submission_service)
):
    """The current student's submission, or null when not started."""
    submission = service.get_own(assignment_id, current_user)
    return submission_payload(submission) if submission else None


@router.put("/assignments/{assignment_id}/submission", response_model=SubmissionResponse)
async def save_answers(
    assignment_id: str,
    data: AnswersSave,
    current_user: User = Depends(get_current_active_user),
    service: SubmissionService = Depends(get_submission_service)
):
    """Save in-progress answers."""
    return submission_payload(service.save_answers(assignment_id, data.values, current_user))


@router.post("/assignments/{assignment_id}/submission/submit", response_model=SubmissionResponse)
async def submit_assignment(
    assignment_id: str,
    data: SubmitRequest,
    current_user: User = Depends(get_current_active_user),
    service: SubmissionService = Depends(get_submission_service)
):
    """Submit answers; the submission is autograded immediately."""
    try:
        submission = service.submit(assignment_id, data.values, current_user)
    except (HTTPException, CoursewareError):
        raise
    except Exception as e:
        logger.error(f"Submitting assignment {assignment_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit assignment"
        )
    return submission_payload(submission)


@router.post("/assignments/{assignment_id}/blocks/{block_id}/check", response_model=CheckAnswerResponse)
async def check_answer(
    assignment_id: str,
    block_id: str,
    data: CheckAnswerRequest,
    current_user: User = Depends(get_current_active_user),
    service: SubmissionService = Depends(get_submission_service)
):
    return service.check_answer(assignment_id, block_id, data.selected, current_user)


@router.get("/assignments/{assignment_id}/submissions", response_model=List[SubmissionSummary])
async def list_submissions(
    assignment_id: str,
    current_user: User = Depends(get_current_active_user),
    service: SubmissionService = Depends(get_submission_service)
):
    """All enrolled students with their submission state (instructors and TAs)."""
    return service.list_for_assignment(assignment_id, current_user)


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: str,
    current_user: User = Depends(get_current_active_user),
    service: SubmissionService = Depends(get_submission_service)
):
    return submission_payload(service.get_submission(submission_id, current_user))
