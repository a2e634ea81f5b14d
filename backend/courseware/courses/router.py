"""Course and enrollment endpoints."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth.service import get_current_active_user
from ..database import get_db
from ..models import User
from .schemas import CourseCreate, CourseResponse, CourseSettingsUpdate, EnrollmentCreate, EnrollmentResponse
from .service import CourseService

router = APIRouter(prefix="/courses", tags=["Courses"])


def get_course_service(db: Session = Depends(get_db)) -> CourseService:
    """Dependency to get an instance of CourseService."""
    return CourseService(db)


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    data: CourseCreate,
    current_user: User = Depends(get_current_active_user),
    service: CourseService = Depends(get_course_service)
):
    return service.create_course(data, current_user)


@router.get("", response_model=List[CourseResponse])
async def list_courses(
    current_user: User = Depends(get_current_active_user),
    service: CourseService = Depends(get_course_service)
):
    """Courses the current user is enrolled in."""
    return service.list_courses(current_user)


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: CourseService = Depends(get_course_service)
):
    return service.get_for_user(course_id, current_user)


@router.patch("/{course_id}/settings", response_model=CourseResponse)
async def update_course_settings(
    course_id: str,
    data: CourseSettingsUpdate,
    current_user: User = Depends(get_current_active_user),
    service: CourseService = Depends(get_course_service)
):
    """Update assistant memory settings for the course (instructors only)."""
    return service.update_settings(course_id, data, current_user)


@router.get("/{course_id}/enrollments", response_model=List[EnrollmentResponse])
async def list_enrollments(
    course_id: str,
    current_user: User = Depends(get_current_active_user),
    service: CourseService = Depends(get_course_service)
):
    return service.list_enrollments(course_id, current_user)


@router.post("/{course_id}/enrollments", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def enroll_user(
    course_id: str,
    data: EnrollmentCreate,
    current_user: User = Depends(get_current_active_user),
    service: CourseService = Depends(get_course_service)
):
    return service.enroll(course_id, data, current_user)
