"""
Custom exceptions module.

Fatal errors abort the run, batch errors abort only their batch.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
    DatabaseError,

    # Configuration
    ConfigurationError,

    # Source file
    SourceFileNotFoundError,
    SourceFileParseError,

    # Remote service
    AuthError,
    SchemaReadError,
    RateLimitedError,
    BatchSubmitError,
    TimestampOverwriteError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "DatabaseError",

    # Configuration
    "ConfigurationError",

    # Source file
    "SourceFileNotFoundError",
    "SourceFileParseError",

    # Remote service
    "AuthError",
    "SchemaReadError",
    "RateLimitedError",
    "BatchSubmitError",
    "TimestampOverwriteError",
]
