"""
Custom exception classes for the importer.

Fatal errors (missing source file, auth failure, schema read failure)
abort the run. Batch errors abort only the current batch. Row-level
problems never raise; they are reported as warnings by the row mapper.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all importer errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SOURCE_FILE_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP-style status code, used for classification only
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to structured log/report format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Remote table operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        code: str = "DATABASE_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CONFIGURATION
# ===================

class ConfigurationError(ValidationError):
    """Invalid import configuration, detected before any remote call."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=message,
            details=details
        )


# ===================
# SOURCE FILE
# ===================

class SourceFileNotFoundError(NotFoundError):
    """Source file does not exist."""

    def __init__(self, path: str):
        super().__init__(
            resource="Source file",
            identifier=path,
            code="SOURCE_FILE_NOT_FOUND"
        )


class SourceFileParseError(ValidationError):
    """Source file could not be read as delimited text."""

    def __init__(self, path: str, message: str):
        super().__init__(
            code="SOURCE_FILE_PARSE_ERROR",
            message=message,
            details={"path": path}
        )


# ===================
# REMOTE SERVICE
# ===================

class AuthError(ExternalServiceError):
    """Could not establish an authenticated session with the destination."""

    def __init__(self, site: str, message: str):
        super().__init__(
            service="destination",
            message=message,
            code="AUTH_FAILED",
            details={"site": site}
        )


class SchemaReadError(ExternalServiceError):
    """Destination field list could not be read."""

    def __init__(self, list_name: str, message: str):
        super().__init__(
            service="destination",
            message=f"Could not read fields of '{list_name}': {message}",
            code="SCHEMA_READ_FAILED",
            details={"list_name": list_name}
        )


class RateLimitedError(ExternalServiceError):
    """Destination rejected the call because of its request-rate ceiling."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            service="destination",
            message=message,
            code="RATE_LIMITED",
            details={"operation": operation}
        )


class BatchSubmitError(DatabaseError):
    """Batch creation transaction failed as a whole."""

    def __init__(self, batch_number: int, message: str, size: int = 0):
        super().__init__(
            operation="insert",
            message=message,
            code="BATCH_SUBMIT_FAILED",
            details={"batch_number": batch_number, "size": size}
        )


class TimestampOverwriteError(DatabaseError):
    """Second-phase timestamp overwrite failed for a batch."""

    def __init__(self, batch_number: int, message: str, size: int = 0):
        super().__init__(
            operation="timestamp overwrite",
            message=message,
            code="TIMESTAMP_OVERWRITE_FAILED",
            details={"batch_number": batch_number, "size": size}
        )
