"""Assignment service: CRUD, content persistence, ordering and the student view."""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..auth.service import can_author, require_author, require_course_role
from ..config import MAX_CONTENT_BYTES
from ..content import (
    DocumentTooDeepError, empty_document, normalize_document, parse_content, serialize_content, strip_answers,
)
from ..errors import ContentTooLargeError, NotFoundError, ValidationError
from ..models import Assignment, Course, User
from .ordering import build_module_tree, next_order, order_for_index
from .schemas import AssignmentCreate, AssignmentMove, AssignmentUpdate

logger = logging.getLogger(__name__)


class AssignmentService:
    def __init__(self, db: Session):
        self.db = db

    def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment")
        return assignment

    def _get_course(self, course_id: str) -> Course:
        course = self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course")
        return course

    def get_for_user(self, assignment_id: str, user: User) -> Tuple[Assignment, bool]:
        """Fetch an assignment the user may see; returns it with an ``can_edit`` flag.

        Unpublished assignments do not exist as far as students are concerned.
        """
        assignment = self.get_assignment(assignment_id)
        require_course_role(self.db, user, assignment.course_id)
        editable = can_author(self.db, user, assignment.course_id)
        if not editable and not assignment.published:
            raise NotFoundError("Assignment")
        return assignment, editable

    def get_for_author(self, assignment_id: str, user: User) -> Assignment:
        assignment = self.get_assignment(assignment_id)
        require_author(self.db, user, assignment.course_id)
        return assignment

    def list_for_course(self, course_id: str, user: User) -> List[Assignment]:
        self._get_course(course_id)
        require_course_role(self.db, user, course_id)
        query = self.db.query(Assignment).filter(Assignment.course_id == course_id)
        if not can_author(self.db, user, course_id):
            query = query.filter(Assignment.published.is_(True))
        return query.order_by(Assignment.order).all()

    def module_tree(self, course_id: str, user: User) -> Dict[str, Any]:
        return build_module_tree(self.list_for_course(course_id, user)).to_dict()

    def _course_orders(self, course_id: str, exclude_id: Optional[str] = None) -> List[float]:
        query = self.db.query(Assignment.order).filter(Assignment.course_id == course_id)
        if exclude_id:
            query = query.filter(Assignment.id != exclude_id)
        return [row[0] for row in query.all()]

    def create(self, course_id: str, data: AssignmentCreate, user: User) -> Assignment:
        """Create an assignment at the end of the course order."""
        self._get_course(course_id)
        require_author(self.db, user, course_id)

        assignment = Assignment(
            course_id=course_id,
            name=data.name,
            module_path=data.module_path,
            settings=data.settings,
            content=serialize_content(empty_document()),
            order=next_order(self._course_orders(course_id)),
            created_by=user.id,
        )
        self.db.add(assignment)
        self.db.commit()
        self.db.refresh(assignment)
        logger.info(f"Created assignment {assignment.id} in course {course_id} at order {assignment.order}")
        return assignment

    def update(self, assignment_id: str, data: AssignmentUpdate, user: User) -> Assignment:
        assignment = self.get_for_author(assignment_id, user)
        if data.name is not None:
            assignment.name = data.name
        if data.published is not None:
            assignment.published = data.published
        if data.settings is not None:
            self.merge_settings(assignment, data.settings, commit=False)
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def rename(self, assignment: Assignment, name: str) -> Assignment:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Assignment title cannot be empty")
        assignment.name = name
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def merge_settings(self, assignment: Assignment, changes: Dict[str, Any], commit: bool = True) -> Dict[str, Any]:
        """Apply only the provided settings keys, leaving the rest untouched."""
        # JSON columns are not mutation-tracked, assign a new dict
        assignment.settings = {**(assignment.settings or {}), **changes}
        if commit:
            self.db.commit()
            self.db.refresh(assignment)
        return assignment.settings

    def delete(self, assignment_id: str, user: User) -> None:
        assignment = self.get_for_author(assignment_id, user)
        self.db.delete(assignment)
        self.db.commit()
        logger.info(f"Deleted assignment {assignment_id}")

    def move(self, assignment_id: str, data: AssignmentMove, user: User) -> Assignment:
        """Move into ``module_path`` at a position in the course-wide order."""
        assignment = self.get_for_author(assignment_id, user)
        orders = self._course_orders(assignment.course_id, exclude_id=assignment.id)
        assignment.module_path = data.module_path
        assignment.order = order_for_index(orders, data.index)
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    # Content

    def load_document(self, assignment: Assignment) -> Dict[str, Any]:
        return parse_content(assignment.content)

    def save_content(self, assignment_id: str, raw_content: str, user: User) -> Tuple[Assignment, List[str]]:
        """Persist editor content.

        The payload must be a JSON document within the size limit. Invalid
        MCQ blocks are repaired rather than rejected and reported as warnings.
        """
        assignment = self.get_for_author(assignment_id, user)

        size = len(raw_content.encode("utf-8"))
        if size > MAX_CONTENT_BYTES:
            raise ContentTooLargeError(size, MAX_CONTENT_BYTES)

        try:
            value = json.loads(raw_content)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Content must be valid JSON: {e.msg}", code="INVALID_CONTENT")
        except RecursionError:
            raise ValidationError(str(DocumentTooDeepError()), code="INVALID_CONTENT")
        if not isinstance(value, dict):
            raise ValidationError("Content must be a JSON document object", code="INVALID_CONTENT")

        warnings = self.save_document(assignment, value)
        return assignment, warnings

    def save_document(self, assignment: Assignment, doc: Dict[str, Any]) -> List[str]:
        warnings: List[str] = []
        try:
            cleaned = normalize_document(doc, sanitize_warnings=warnings)
        except DocumentTooDeepError as e:
            raise ValidationError(str(e), code="INVALID_CONTENT")
        if warnings:
            logger.warning(f"Sanitized MCQ blocks in assignment {assignment.id}: {'; '.join(warnings)}")
        assignment.content = serialize_content(cleaned)
        self.db.commit()
        self.db.refresh(assignment)
        return warnings

    def detail(self, assignment: Assignment, can_edit: bool) -> Dict[str, Any]:
        """Response payload; students get the document without answers."""
        doc = self.load_document(assignment)
        return {
            "id": assignment.id,
            "course_id": assignment.course_id,
            "name": assignment.name,
            "settings": assignment.settings or {},
            "module_path": assignment.module_path or [],
            "order": assignment.order,
            "published": assignment.published,
            "total_points": assignment.total_points,
            "created_at": assignment.created_at,
            "updated_at": assignment.updated_at,
            "content": doc if can_edit else strip_answers(doc),
            "can_edit": can_edit,
        }
