"""Error taxonomy shared by repositories, use cases, and controllers."""

from __future__ import annotations

from typing import Any

DEFAULT_ERROR_MESSAGE = "Unknown error"


class CoursevenError(Exception):
    """Base class for every error raised by the client core."""


class AuthenticationError(CoursevenError):
    """Missing or expired credentials; the caller has to sign in again."""


class ValidationFailure(CoursevenError):
    """Client-side validation failed before any network call was made."""


class DuplicateAssessmentError(ValidationFailure):
    """A reviewer already rated this peer for the activity."""

    def __init__(self, activity_id: str, reviewer_id: str, student_id: str) -> None:
        self.activity_id = activity_id
        self.reviewer_id = reviewer_id
        self.student_id = student_id
        super().__init__("This assessment was already submitted")


class RemoteError(CoursevenError):
    """Non-2xx response from the Roble backend, or no response at all.

    ``status`` is ``None`` when the request failed before a response arrived.
    """

    def __init__(self, table: str | None, status: int | None, detail: str | None = None) -> None:
        self.table = table
        self.status = status
        self.detail = detail
        scope = f"Database error ({table})" if table else "Remote error"
        base = f"{scope} - status {status}" if status is not None else f"{scope} - request failed"
        super().__init__(f"{base}: {detail}" if detail else base)


class UnsupportedOperationError(CoursevenError):
    """Operation declared on a repository contract with no backend path."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} is not supported")


def extract_error_message(data: Any) -> str | None:
    """Pull a human-readable message out of a JSON error body."""
    if not isinstance(data, dict):
        return None
    for key in ("message", "error", "detail"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def error_message(error: BaseException | str | None) -> str:
    """Render any failure as the string stored in ``state.error``."""
    if error is None:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(error, str):
        return error or DEFAULT_ERROR_MESSAGE
    text = str(error)
    return text or type(error).__name__


__all__ = [
    "AuthenticationError",
    "CoursevenError",
    "DuplicateAssessmentError",
    "RemoteError",
    "UnsupportedOperationError",
    "ValidationFailure",
    "error_message",
    "extract_error_message",
]
