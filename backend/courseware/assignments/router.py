"""Assignment endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..auth.service import get_current_active_user
from ..database import get_db
from ..errors import CoursewareError
from ..models import User
from .schemas import (
    AssignmentCreate, AssignmentDetail, AssignmentMove, AssignmentResponse, AssignmentUpdate,
    ContentSave, ContentSaveResponse, ModuleTreeResponse,
)
from .service import AssignmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assignments"])


def get_assignment_service(db: Session = Depends(get_db)) -> AssignmentService:
    """Dependency to get an instance of AssignmentService."""
    return AssignmentService(db)


@router.get("/courses/{course_id}/assignments", response_model=List[AssignmentResponse])
async def list_assignments(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    """List a course's assignments in order. Students only see published ones."""
    return service.list_for_course(course_id, current_user)


@router.get("/courses/{course_id}/assignments/tree", response_model=ModuleTreeResponse)
async def get_module_tree(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Assignments grouped into module folders."""
    return {"course_id": course_id, "tree": service.module_tree(course_id, current_user)}


@router.post("/courses/{course_id}/assignments", response_model=AssignmentResponse,
             status_code=status.HTTP_201_CREATED)
async def create_assignment(
    course_id: str,
    data: AssignmentCreate,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    return service.create(course_id, data, current_user)


@router.get("/assignments/{assignment_id}", response_model=AssignmentDetail)
async def get_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Assignment with its content document; answers are stripped for students."""
    assignment, can_edit = service.get_for_user(assignment_id, current_user)
    return service.detail(assignment, can_edit)


@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    return service.update(assignment_id, data, current_user)


@router.put("/assignments/{assignment_id}/content", response_model=ContentSaveResponse)
async def save_assignment_content(
    assignment_id: str,
    data: ContentSave,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Save the serialized editor document."""
    try:
        assignment, warnings = service.save_content(assignment_id, data.content, current_user)
    except (HTTPException, CoursewareError):
        raise
    except Exception as e:
        logger.error(f"Failed to save content for assignment {assignment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save assignment content"
        )
    return {
        "id": assignment.id,
        "total_points": assignment.total_points,
        "updated_at": assignment.updated_at,
        "warnings": warnings,
    }


@router.post("/assignments/{assignment_id}/move", response_model=AssignmentResponse)
async def move_assignment(
    assignment_id: str,
    data: AssignmentMove,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    """Move an assignment to a folder and a position in the course order."""
    return service.move(assignment_id, data, current_user)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_active_user),
    service: AssignmentService = Depends(get_assignment_service)
):
    service.delete(assignment_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
