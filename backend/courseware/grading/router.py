"""Grader, rubric and gradebook endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..auth.service import get_current_active_user
from ..database import get_db
from ..errors import CoursewareError
from ..models import User
from .schemas import (
    EnsureGraderRequest, GradebookResponse, GraderResponse, GraderUpdate, RubricResponse, RubricSave,
    RubricSchemaResponse, RubricSchemaSave,
)
from .service import GradingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Grading"])


def get_grading_service(db: Session = Depends(get_db)) -> GradingService:
    """Dependency to get an instance of GradingService."""
    return GradingService(db)


@router.get("/submissions/{submission_id}/grader", response_model=GraderResponse)
async def get_grader(
    submission_id: str,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    return service.get_grader(submission_id, current_user)


@router.patch("/submissions/{submission_id}/grader", response_model=GraderResponse)
async def update_grader(
    submission_id: str,
    data: GraderUpdate,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    """Update feedback, score modifier or the reviewed flag."""
    return service.update_grader(submission_id, data, current_user)


@router.post("/assignments/{assignment_id}/graders", response_model=GraderResponse)
async def ensure_grader(
    assignment_id: str,
    data: EnsureGraderRequest,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    """Return the student's grader, creating the submission and grader when missing."""
    try:
        return service.ensure_grader(assignment_id, data.student_id, current_user)
    except (HTTPException, CoursewareError):
        raise
    except Exception as e:
        logger.error(f"Ensuring grader for student {data.student_id} on {assignment_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create grader"
        )


@router.get("/assignments/{assignment_id}/rubric-schema", response_model=RubricSchemaResponse)
async def get_rubric_schema(
    assignment_id: str,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    return service.get_rubric_schema(assignment_id, current_user)


@router.put("/assignments/{assignment_id}/rubric-schema", response_model=RubricSchemaResponse)
async def save_rubric_schema(
    assignment_id: str,
    data: RubricSchemaSave,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    return service.save_rubric_schema(assignment_id, data, current_user)


@router.delete("/assignments/{assignment_id}/rubric-schema", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rubric_schema(
    assignment_id: str,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    service.delete_rubric_schema(assignment_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/submissions/{submission_id}/rubric", response_model=RubricResponse)
async def get_rubric(
    submission_id: str,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    return service.get_rubric(submission_id, current_user)


@router.put("/submissions/{submission_id}/rubric", response_model=RubricResponse)
async def save_rubric(
    submission_id: str,
    data: RubricSave,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    """Record rubric points; the grader's rubric score is recomputed."""
    return service.save_rubric(submission_id, data.values, current_user)


@router.get("/courses/{course_id}/gradebook", response_model=GradebookResponse)
async def get_gradebook(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    return service.gradebook(course_id, current_user)


@router.get("/courses/{course_id}/grades/me", response_model=GradebookResponse)
async def get_my_grades(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: GradingService = Depends(get_grading_service)
):
    return service.student_grades(course_id, current_user)
