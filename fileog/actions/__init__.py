"""Actions module for file operations."""

from .models import (
    OperationType,
    OperationStatus,
    UndoState,
    Operation,
    OperationBatch,
    PlannedOperation,
)
from .planner import OperationPlanner
from .file_operations import OperationExecutor
from .history_tracker import HistoryStore, BackupArea, UndoResult, UndoFailure

__all__ = [
    "OperationType",
    "OperationStatus",
    "UndoState",
    "Operation",
    "OperationBatch",
    "PlannedOperation",
    "OperationPlanner",
    "OperationExecutor",
    "HistoryStore",
    "BackupArea",
    "UndoResult",
    "UndoFailure",
]
