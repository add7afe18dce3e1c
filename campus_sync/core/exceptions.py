# campus_sync/core/exceptions.py
"""Custom exceptions for the campus sync client."""
from typing import Any, Optional


class CampusSyncException(Exception):
    """Base exception for the sync client."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NetworkError(CampusSyncException):
    """Transport failure (no response received) after the retry."""


class AuthError(CampusSyncException):
    """401/403 from the server, or a protected call without a session."""
    def __init__(self, message: str = "Session expired. Please log in again.", status_code: Optional[int] = None):
        super().__init__(message, status_code)


class ApiError(CampusSyncException):
    """Server answered with a non-success status."""
    def __init__(self, message: str, status_code: int, details: Optional[Any] = None):
        super().__init__(message, status_code, details)


class ValidationError(ApiError):
    """4xx response other than auth failures."""


class ServerError(ApiError):
    """5xx response."""


class SchemaError(ServerError):
    """Response body did not match the expected schema."""
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message, 502, details)


class PermissionError(CampusSyncException):
    """Attendance transition rejected locally."""
    def __init__(self, message: str = "This record is locked by an administrator."):
        super().__init__(message, 403)


class ChatGateClosed(CampusSyncException):
    """Chat window is closed; nothing was sent."""
    def __init__(self, message: str = "Chat is closed outside the configured window."):
        super().__init__(message)


class StaleSessionError(CampusSyncException):
    """Bulk data arrived for a session that has since ended or changed."""


def error_for_status(status_code: int, message: str, details: Optional[Any] = None) -> CampusSyncException:
    """Map an HTTP status to the exception the caller should see."""
    if status_code in (401, 403):
        return AuthError(message, status_code)
    if status_code >= 500:
        return ServerError(message, status_code, details)
    return ValidationError(message, status_code, details)
