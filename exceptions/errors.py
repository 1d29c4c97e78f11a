"""
Custom exception classes for the import engine.

Structural errors (bad mapping files, failed validation, strict-mode
failures) derive from ValidationError and are always fatal to the
operation that raised them. Row-level problems never raise; they are
logged and skipped by the services.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all engine errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "MAPPING_CONFIG_ERROR")
        message: Human-readable message
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to a serializable error payload."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource} not found: {identifier}",
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details=details
        )


# ===================
# MAPPING CONFIGURATION ERRORS
# ===================

class MappingConfigError(ValidationError):
    """Mapping configuration could not be loaded."""

    def __init__(
        self,
        message: str,
        code: str = "MAPPING_CONFIG_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details=details
        )


class MappingFieldNameError(MappingConfigError):
    """Mapping file uses field names that are not PascalCase."""

    def __init__(self, invalid_names: list[str]):
        super().__init__(
            code="MAPPING_FIELD_NAME_INVALID",
            message=(
                "Mapping file contains field names that are not PascalCase: "
                + ", ".join(invalid_names)
            ),
            details={"invalid_names": invalid_names}
        )


class MappingValidationError(MappingConfigError):
    """Mapping configuration has validation errors and cannot be frozen."""

    def __init__(self, errors: list[str]):
        super().__init__(
            code="MAPPING_VALIDATION_FAILED",
            message="Mapping configuration is invalid: " + "; ".join(errors),
            details={"errors": errors}
        )


class MappingFileNotFoundError(NotFoundError):
    """Mapping file does not exist."""

    def __init__(self, path: str):
        super().__init__(
            resource="Mapping file",
            identifier=path,
            code="MAPPING_FILE_NOT_FOUND"
        )


class UnknownRecordTypeError(NotFoundError):
    """Target type is not a declared record type."""

    def __init__(self, type_name: str):
        super().__init__(
            resource="Record type",
            identifier=type_name,
            code="UNKNOWN_RECORD_TYPE"
        )


# ===================
# SOURCE FILE ERRORS
# ===================

class SourceFileNotFoundError(NotFoundError):
    """Source file does not exist."""

    def __init__(self, path: str):
        super().__init__(
            resource="Source file",
            identifier=path,
            code="SOURCE_FILE_NOT_FOUND"
        )


class UnsupportedFileTypeError(ValidationError):
    """Source file extension is not importable."""

    def __init__(self, path: str, extension: str):
        super().__init__(
            code="UNSUPPORTED_FILE_TYPE",
            message=f"Unsupported file type: {extension or '(none)'}",
            details={"path": path, "extension": extension, "valid": [".csv", ".xls", ".xlsx"]}
        )


class SourceReadError(AppError):
    """Source file could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="SOURCE_READ_ERROR",
            message=message,
            details=details
        )


class FileNotReadyError(SourceReadError):
    """Source file stayed locked past the readiness timeout."""

    def __init__(self, path: str, timeout_seconds: float, last_error: str = ""):
        super().__init__(
            message=f"File is not readable after {timeout_seconds:g}s: {path}",
            details={"path": path, "timeout_seconds": timeout_seconds, "original_error": last_error}
        )
        self.code = "FILE_NOT_READY"


# ===================
# IMPORT ERRORS
# ===================

class StrictModeMissingHeadersError(ValidationError):
    """Strict mode: required headers were never seen in any header row."""

    def __init__(self, missing_headers: list[str]):
        super().__init__(
            code="STRICT_MISSING_REQUIRED_HEADERS",
            message="Strict mode: required headers missing: " + ", ".join(missing_headers),
            details={"missing_headers": missing_headers}
        )
