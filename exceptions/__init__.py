"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,

    # Mapping configuration
    MappingConfigError,
    MappingFieldNameError,
    MappingValidationError,
    MappingFileNotFoundError,
    UnknownRecordTypeError,

    # Source files
    SourceFileNotFoundError,
    UnsupportedFileTypeError,
    SourceReadError,
    FileNotReadyError,

    # Import
    StrictModeMissingHeadersError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",

    # Mapping configuration
    "MappingConfigError",
    "MappingFieldNameError",
    "MappingValidationError",
    "MappingFileNotFoundError",
    "UnknownRecordTypeError",

    # Source files
    "SourceFileNotFoundError",
    "UnsupportedFileTypeError",
    "SourceReadError",
    "FileNotReadyError",

    # Import
    "StrictModeMissingHeadersError",
]
