"""Authentication package for the application."""
from .service import (
    AuthService, get_current_user, get_current_active_user, get_user_from_token,
    require_course_role, require_author, can_author,
)
from .router import router as auth_router

__all__ = [
    'AuthService',
    'get_current_user',
    'get_current_active_user',
    'get_user_from_token',
    'require_course_role',
    'require_author',
    'can_author',
    'auth_router'
]
