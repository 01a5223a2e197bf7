"""
Custom HTTP exceptions with error codes.

Extends FastAPI's HTTPException with standardized error codes so that the
attendance core can fail fast with structured errors that any host API
renders without translation.

Example:
    from common.utils import NotFoundException

    member = await members.find_one({"_id": member_id})
    if not member:
        raise NotFoundException("Member not found", code="MEMBER_NOT_FOUND")
"""

from typing import Optional, Any, Dict
from fastapi import HTTPException


class APIException(HTTPException):
    """
    Base API exception with error code support.

    Provides consistent error response format across the API.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        self.message = message
        self.code = code

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )


class NotFoundException(APIException):
    """404 Not Found - Resource doesn't exist in the caller's scope."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 Conflict - Resource already exists or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class AlreadyClosedException(ConflictException):
    """409 Conflict - Attendance record already has a check-out time."""

    def __init__(
        self,
        message: str = "Already checked out",
        code: str = "ALREADY_CHECKED_OUT",
        details: Optional[Any] = None,
    ):
        super().__init__(message, code, details)


class ValidationException(APIException):
    """422 Validation Error - Request validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
        errors: Optional[list] = None,
    ):
        detail_info = details
        if errors:
            detail_info = {"errors": errors, **(details or {})}
        super().__init__(422, message, code, detail_info)


class InvalidTimestampException(ValidationException):
    """422 Validation Error - A date/time value could not be parsed."""

    def __init__(
        self,
        message: str = "Invalid timestamp",
        code: str = "INVALID_TIMESTAMP",
        details: Optional[Any] = None,
    ):
        super().__init__(message, code, details)
