"""
Custom Exceptions
=================

Defines custom exception classes for the file organizer.
All exceptions include error codes for programmatic handling.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Error codes for programmatic error handling."""

    # General errors (1000-1099)
    UNKNOWN_ERROR = 1000
    CONFIGURATION_ERROR = 1001
    CANCELLED = 1002

    # Classification errors (1200-1299)
    CLASSIFICATION_FAILED = 1200
    MODEL_UNAVAILABLE = 1201
    MODEL_REJECTED = 1202
    PARSE_ERROR = 1203
    INVALID_RULE = 1204

    # Filesystem operation errors (1500-1599)
    OPERATION_FAILED = 1500
    DESTINATION_CONFLICT = 1501
    PERMISSION_DENIED = 1502
    PATH_NOT_FOUND = 1503

    # History / undo errors (1600-1699)
    BACKUP_MISSING = 1600
    CONFLICT_DETECTED = 1601
    HISTORY_CORRUPTED = 1602


class FileOrganizerError(Exception):
    """Base exception for all file organizer errors.

    Attributes:
        message: Human-readable error message.
        error_code: Programmatic error code.
        details: Additional error context.
        cause: Original exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[dict] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Programmatic error code.
            details: Additional context as key-value pairs.
            cause: Original exception if wrapping another error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return a formatted error string."""
        result = f"[{self.error_code.name}] {self.message}"
        if self.details:
            result += f" | Details: {self.details}"
        if self.cause:
            result += f" | Caused by: {type(self.cause).__name__}: {self.cause}"
        return result

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(FileOrganizerError):
    """Raised when there's a configuration problem.

    Examples:
        - Invalid settings or categories file
        - Duplicate rule priority inside one category
        - Invalid configuration values
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(
            message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details=details,
            **kwargs
        )


class OperationCancelled(FileOrganizerError):
    """Raised when a scan or classification run was cancelled by the caller."""

    def __init__(self, message: str = "Operation cancelled", completed: int = 0, **kwargs):
        details = kwargs.pop("details", {})
        details["completed"] = completed
        super().__init__(
            message,
            error_code=ErrorCode.CANCELLED,
            details=details,
            **kwargs
        )
        self.completed = completed


class ClassificationError(FileOrganizerError):
    """Raised when file classification fails.

    Examples:
        - Model endpoint not reachable
        - Provider returned an error status
        - Response could not be interpreted
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.CLASSIFICATION_FAILED,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        super().__init__(
            message,
            error_code=error_code,
            details=details,
            **kwargs
        )


class ModelUnavailable(ClassificationError):
    """The configured model endpoint cannot be reached (or timed out)."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.MODEL_UNAVAILABLE)
        super().__init__(message, **kwargs)


class ModelRejected(ClassificationError):
    """The provider answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        kwargs.setdefault("error_code", ErrorCode.MODEL_REJECTED)
        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code


class ParseError(ClassificationError):
    """The model response could not be interpreted as a category decision."""

    def __init__(self, message: str, response_excerpt: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if response_excerpt is not None:
            details["response"] = response_excerpt[:200]
        kwargs.setdefault("error_code", ErrorCode.PARSE_ERROR)
        super().__init__(message, details=details, **kwargs)


class InvalidRule(ClassificationError):
    """A category rule cannot be evaluated (e.g. malformed regex).

    Never propagated out of rule matching; the rule is skipped and logged.
    """

    def __init__(
        self,
        message: str,
        pattern: Optional[str] = None,
        rule_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if pattern is not None:
            details["pattern"] = pattern
        if rule_type:
            details["rule_type"] = rule_type
        kwargs.setdefault("error_code", ErrorCode.INVALID_RULE)
        super().__init__(message, details=details, **kwargs)


class FileOperationError(FileOrganizerError):
    """Raised when a filesystem operation or its undo fails.

    Attributes:
        file_path: Path the operation was acting on.
        operation: Operation type (move, copy, rename, delete).
    """

    default_code = ErrorCode.OPERATION_FAILED

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            error_code=error_code or self.default_code,
            details=details,
            **kwargs
        )
        self.file_path = file_path
        self.operation = operation


class DestinationConflict(FileOperationError):
    """The destination already exists; nothing is overwritten."""

    default_code = ErrorCode.DESTINATION_CONFLICT


class BackupMissing(FileOperationError):
    """The backup slot (or the moved/copied file) needed for undo is gone."""

    default_code = ErrorCode.BACKUP_MISSING


class ConflictDetected(FileOperationError):
    """The filesystem changed since the operation ran, so undo would clobber data."""

    default_code = ErrorCode.CONFLICT_DETECTED


class PermissionDenied(FileOperationError):
    """The host refused access to a path."""

    default_code = ErrorCode.PERMISSION_DENIED


class PathNotFound(FileOperationError):
    """A required path does not exist."""

    default_code = ErrorCode.PATH_NOT_FOUND


def translate_os_error(
    error: OSError,
    file_path: Optional[str] = None,
    operation: Optional[str] = None
) -> FileOperationError:
    """Map an OSError onto the filesystem error taxonomy.

    Args:
        error: The raised OS error.
        file_path: Path being operated on.
        operation: Operation type for context.

    Returns:
        The matching FileOperationError subclass instance.
    """
    if isinstance(error, FileNotFoundError):
        cls = PathNotFound
    elif isinstance(error, PermissionError):
        cls = PermissionDenied
    elif isinstance(error, FileExistsError):
        cls = DestinationConflict
    else:
        cls = FileOperationError
    message = error.strerror or str(error)
    return cls(message, file_path=file_path, operation=operation, cause=error)
