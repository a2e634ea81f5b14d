"""User-facing titles and messages for failed saves."""
from typing import Tuple

import httpx

from .api import ApiError

DEFAULT_TITLE = "Failed to save"
DEFAULT_MESSAGE = "Your changes could not be saved. Please try again."

_BY_STATUS = {
    400: ("Invalid Content",
          "The assignment content contains invalid data. Please check your questions and try again."),
    401: ("Session Expired", "Your session has expired. Please sign in again."),
    403: ("Permission Denied", "You don't have permission to edit this assignment."),
    413: ("Content Too Large", "The assignment content is too large. Please reduce the content size."),
    500: ("Server Error", "A server error occurred. Please try again in a few moments."),
}

CONNECTION_ERROR = ("Connection Error", "Unable to connect to the server. Please check your internet connection.")
TIMEOUT_ERROR = ("Request Timeout", "The save request timed out. Please try again.")


def describe_error(error: Exception) -> Tuple[str, str]:
    """Map a failed request to a ``(title, message)`` pair."""
    if isinstance(error, ApiError):
        if error.status_code in _BY_STATUS:
            return _BY_STATUS[error.status_code]
        return DEFAULT_TITLE, error.message or DEFAULT_MESSAGE
    # TimeoutException subclasses TransportError, so check it first
    if isinstance(error, httpx.TimeoutException):
        return TIMEOUT_ERROR
    if isinstance(error, httpx.TransportError):
        return CONNECTION_ERROR
    return DEFAULT_TITLE, DEFAULT_MESSAGE
