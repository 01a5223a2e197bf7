"""
Utilities module - Common exceptions shared by the services and jobs.
"""

from common.utils.exceptions import (
    APIException,
    NotFoundException,
    ConflictException,
    AlreadyClosedException,
    ValidationException,
    InvalidTimestampException,
)

__all__ = [
    "APIException",
    "NotFoundException",
    "ConflictException",
    "AlreadyClosedException",
    "ValidationException",
    "InvalidTimestampException",
]
