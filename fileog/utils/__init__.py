"""Utilities module for the file organizer."""

from .logging_config import setup_logging, get_logger, LoggingConfig
from .exceptions import (
    ErrorCode,
    FileOrganizerError,
    ConfigurationError,
    OperationCancelled,
    ClassificationError,
    ModelUnavailable,
    ModelRejected,
    ParseError,
    InvalidRule,
    FileOperationError,
    DestinationConflict,
    BackupMissing,
    ConflictDetected,
    PermissionDenied,
    PathNotFound,
)
from .progress import ProgressEvent, ProgressChannel, CancellationToken

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggingConfig",
    "ErrorCode",
    "FileOrganizerError",
    "ConfigurationError",
    "OperationCancelled",
    "ClassificationError",
    "ModelUnavailable",
    "ModelRejected",
    "ParseError",
    "InvalidRule",
    "FileOperationError",
    "DestinationConflict",
    "BackupMissing",
    "ConflictDetected",
    "PermissionDenied",
    "PathNotFound",
    "ProgressEvent",
    "ProgressChannel",
    "CancellationToken",
]
