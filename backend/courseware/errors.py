"""Domain exceptions and the FastAPI handlers that render them."""

import logging
import secrets
from datetime import datetime, UTC
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import ENVIRONMENT

logger = logging.getLogger(__name__)


class CoursewareError(Exception):
    """Base exception for courseware errors."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.message = message or "An unexpected error occurred"
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(CoursewareError):
    """Raised when a request carries invalid data."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthenticationError(CoursewareError):
    """Raised when a request is not authenticated."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationError(CoursewareError):
    """Raised when the caller lacks permission for an operation."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class NotFoundError(CoursewareError):
    """Raised when a record does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class ConflictError(CoursewareError):
    """Raised when a write conflicts with existing state."""
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT_ERROR"


class ContentTooLargeError(CoursewareError):
    """Raised when assignment content exceeds the size limit."""
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code = "CONTENT_TOO_LARGE"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Content size {size} exceeds maximum allowed size of {limit} bytes")


def error_body(code: str, message: str, path: str, request_id: str,
               details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build the JSON error envelope shared by every error response."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {
        "error": error,
        "timestamp": datetime.now(UTC).isoformat(),
        "path": path,
        "requestId": request_id,
    }


_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_ERROR",
    403: "AUTHORIZATION_ERROR",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT_ERROR",
    413: "CONTENT_TOO_LARGE",
    422: "VALIDATION_ERROR",
}


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id") or secrets.token_hex(8)


def _error_response(request: Request, status_code: int, code: str, message: str,
                    details: Optional[Dict[str, Any]] = None,
                    headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    request_id = _request_id(request)
    log_line = f"{request.method} {request.url.path} -> {status_code} {code}: {message} (request {request_id})"
    if status_code >= 500:
        logger.error(log_line)
        if ENVIRONMENT == "production":
            message = "Internal server error"
            details = None
    else:
        logger.warning(log_line)
    return JSONResponse(
        status_code=status_code,
        content=error_body(code, message, request.url.path, request_id, details),
        headers=headers,
    )


async def courseware_error_handler(request: Request, exc: CoursewareError) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR" if exc.status_code >= 500 else "HTTP_ERROR")
    return _error_response(request, exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        details={"errors": errors},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the courseware exception handlers to an application."""
    app.add_exception_handler(CoursewareError, courseware_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
