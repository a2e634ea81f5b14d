"""Course service: creation, enrollments and course settings."""
import logging
from typing import List

from sqlalchemy.orm import Session

from ..auth.service import require_course_role
from ..errors import ConflictError, NotFoundError
from ..models import Course, CourseRole, Enrollment, User
from .schemas import CourseCreate, CourseSettingsUpdate, EnrollmentCreate

logger = logging.getLogger(__name__)


class CourseService:
    def __init__(self, db: Session):
        self.db = db

    def get_course(self, course_id: str) -> Course:
        course = self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course")
        return course

    def create_course(self, data: CourseCreate, user: User) -> Course:
        """Create a course; the creator becomes its instructor."""
        if self.db.query(Course).filter(Course.slug == data.slug).first():
            raise ConflictError(f"Course slug '{data.slug}' is already taken")

        course = Course(name=data.name, slug=data.slug, settings=data.settings)
        self.db.add(course)
        self.db.flush()
        self.db.add(Enrollment(user_id=user.id, course_id=course.id, role=CourseRole.instructor))
        self.db.commit()
        self.db.refresh(course)
        logger.info(f"User {user.id} created course {course.id}")
        return course

    def list_courses(self, user: User) -> List[Course]:
        if user.is_admin:
            return self.db.query(Course).order_by(Course.name).all()
        return (
            self.db.query(Course)
            .join(Enrollment, Enrollment.course_id == Course.id)
            .filter(Enrollment.user_id == user.id)
            .order_by(Course.name)
            .all()
        )

    def get_for_user(self, course_id: str, user: User) -> Course:
        course = self.get_course(course_id)
        require_course_role(self.db, user, course_id)
        return course

    def update_settings(self, course_id: str, data: CourseSettingsUpdate, user: User) -> Course:
        course = self.get_course(course_id)
        require_course_role(self.db, user, course_id, [CourseRole.instructor])
        changes = data.model_dump(exclude_none=True)
        course.settings = {**(course.settings or {}), **changes}
        self.db.commit()
        self.db.refresh(course)
        return course

    def list_enrollments(self, course_id: str, user: User) -> List[Enrollment]:
        self.get_course(course_id)
        require_course_role(self.db, user, course_id, [CourseRole.instructor, CourseRole.ta])
        return self.db.query(Enrollment).filter(Enrollment.course_id == course_id).all()

    def enroll(self, course_id: str, data: EnrollmentCreate, user: User) -> Enrollment:
        """Add a registered user to the course, or change their role."""
        self.get_course(course_id)
        require_course_role(self.db, user, course_id, [CourseRole.instructor])

        member = self.db.query(User).filter(User.email == data.email).first()
        if member is None:
            raise NotFoundError("User")

        enrollment = self.db.query(Enrollment).filter(
            Enrollment.user_id == member.id,
            Enrollment.course_id == course_id,
        ).first()
        if enrollment is None:
            enrollment = Enrollment(user_id=member.id, course_id=course_id, role=data.role)
            self.db.add(enrollment)
        else:
            enrollment.role = data.role
        self.db.commit()
        self.db.refresh(enrollment)
        logger.info(f"Enrolled user {member.id} in course {course_id} as {data.role.value}")
        return enrollment
