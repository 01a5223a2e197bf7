"""
Common library for reusable infrastructure components.

- database: Async MongoDB connection with Beanie ODM
- utils: Standard exceptions with machine-readable error codes
- config: Base settings class
"""

from common.database import MongoDB, BaseDocument
from common.utils import (
    APIException,
    NotFoundException,
    ConflictException,
    AlreadyClosedException,
    ValidationException,
    InvalidTimestampException,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    "BaseDocument",
    # Utils
    "APIException",
    "NotFoundException",
    "ConflictException",
    "AlreadyClosedException",
    "ValidationException",
    "InvalidTimestampException",
    # Config
    "BaseAppSettings",
]
