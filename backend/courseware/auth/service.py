"""Authentication service, current-user dependencies and course role checks."""
from datetime import datetime, timedelta, UTC
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from ..database import get_db
from ..errors import AuthenticationError, AuthorizationError, ConflictError
from ..models import CourseRole, Enrollment, User
from .schemas import TokenData, UserCreate

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")

AUTHOR_ROLES = (CourseRole.instructor, CourseRole.ta)


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a new access token."""
        to_encode = data.copy()
        expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    def create_token_for_user(self, user: User) -> str:
        return self.create_access_token({"sub": user.email, "user_id": user.id})

    def verify_token(self, token: str) -> TokenData:
        """Verify and decode a JWT token."""
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise AuthenticationError("Could not validate credentials")
        email = payload.get("sub")
        user_id = payload.get("user_id")
        if email is None or user_id is None:
            raise AuthenticationError("Could not validate credentials")
        return TokenData(email=email, user_id=user_id)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Authenticate a user with email and password."""
        user = self.db.query(User).filter(User.email == email).first()
        if not user or not user.verify_password(password):
            return None
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inactive user"
            )
        return user

    def register_user(self, user_data: UserCreate) -> User:
        """Register a new user."""
        if self.db.query(User).filter(User.email == user_data.email).first():
            raise ConflictError("Email already registered")

        user = User(email=user_data.email, full_name=user_data.full_name)
        user.set_password(user_data.password)

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user


def get_user_from_token(token: Optional[str], db: Session) -> User:
    """Resolve a bearer token to an active user.

    Used directly by WebSocket endpoints, which pass the token as a query
    parameter instead of an Authorization header.
    """
    if not token:
        raise AuthenticationError()
    token_data = AuthService(db).verify_token(token)
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Dependency to get the current user from the JWT token."""
    try:
        return get_user_from_token(token, db)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Dependency to get the current active user."""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def get_enrollment(db: Session, user: User, course_id: str) -> Optional[Enrollment]:
    return db.query(Enrollment).filter(
        Enrollment.user_id == user.id,
        Enrollment.course_id == course_id,
    ).first()


def require_course_role(db: Session, user: User, course_id: str,
                        roles: Iterable[CourseRole] = tuple(CourseRole)) -> Optional[Enrollment]:
    """Check that ``user`` holds one of ``roles`` in the course.

    Admins pass every check and may have no enrollment, so the return value
    can be None for them.
    """
    enrollment = get_enrollment(db, user, course_id)
    if user.is_admin:
        return enrollment
    if enrollment is None:
        raise AuthorizationError("You are not enrolled in this course")
    if enrollment.role not in tuple(roles):
        raise AuthorizationError()
    return enrollment


def require_author(db: Session, user: User, course_id: str) -> Optional[Enrollment]:
    """Instructors and TAs author content, grade and use the assistant."""
    return require_course_role(db, user, course_id, AUTHOR_ROLES)


def can_author(db: Session, user: User, course_id: str) -> bool:
    if user.is_admin:
        return True
    enrollment = get_enrollment(db, user, course_id)
    return enrollment is not None and enrollment.can_author
