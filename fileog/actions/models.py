"""
Operation Models
================

Planned and executed filesystem operations, and the batches that group
them into undoable units.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class OperationType(Enum):
    """Kind of filesystem mutation."""

    MOVE = "move"
    COPY = "copy"
    RENAME = "rename"
    DELETE = "delete"


class OperationStatus(Enum):
    """Lifecycle state of an operation."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    UNDONE = "undone"
    FAILED = "failed"

    def can_transition_to(self, status: "OperationStatus") -> bool:
        return status in _TRANSITIONS[self]


_TRANSITIONS = {
    OperationStatus.PENDING: {OperationStatus.IN_PROGRESS, OperationStatus.FAILED},
    OperationStatus.IN_PROGRESS: {OperationStatus.COMPLETED, OperationStatus.FAILED},
    OperationStatus.COMPLETED: {OperationStatus.UNDONE},
    OperationStatus.UNDONE: set(),
    OperationStatus.FAILED: set(),
}


class UndoState(Enum):
    """Aggregate undo state of a batch."""

    ACTIVE = "active"
    PARTIALLY_UNDONE = "partially_undone"
    UNDONE = "undone"
    FAILED = "failed"


def _now() -> str:
    return datetime.now().isoformat()


@dataclass
class PlannedOperation:
    """An operation proposed by the planner, not yet executed.

    Attributes:
        file_id: Descriptor id of the file.
        file_name: File name at planning time.
        operation_type: What to do with the file.
        source: Current path of the file.
        destination: Target path (None for delete).
        category: Category id that led to this plan, if any.
    """
    file_id: str
    file_name: str
    operation_type: OperationType
    source: Path
    destination: Optional[Path] = None
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "file_name": self.file_name,
            "operation_type": self.operation_type.value,
            "source": str(self.source),
            "destination": str(self.destination) if self.destination else None,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannedOperation":
        destination = data.get("destination")
        source = Path(data["source"])
        return cls(
            file_id=str(data.get("file_id") or uuid.uuid4()),
            file_name=data.get("file_name") or source.name,
            operation_type=OperationType(data["operation_type"]),
            source=source,
            destination=Path(destination) if destination else None,
            category=data.get("category"),
        )


@dataclass
class Operation:
    """A tracked, reversible filesystem operation.

    ``backup_path`` is what undo needs: the original path for move/rename,
    the created copy for copy, the backup slot for delete. It is set only
    once the operation has completed.

    Attributes:
        id: Unique operation id.
        operation_type: move, copy, rename or delete.
        source_path: Path before the operation.
        destination_path: Path after the operation (None for delete).
        original_name: File name before the operation.
        new_name: File name after the operation.
        timestamp: When the operation was created (ISO format).
        status: Current lifecycle state.
        batch_id: Owning batch.
        backup_path: Undo information, see above.
        error: Failure reason when status is failed.
        undo_error: Reason the last undo attempt failed, if any.
        fingerprint: (size, mtime_ns) of the result, used to detect later edits.
        status_history: Every status this operation has been in.
    """
    operation_type: OperationType
    source_path: str
    destination_path: Optional[str] = None
    original_name: Optional[str] = None
    new_name: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=_now)
    status: OperationStatus = OperationStatus.PENDING
    batch_id: Optional[str] = None
    backup_path: Optional[str] = None
    error: Optional[str] = None
    undo_error: Optional[str] = None
    fingerprint: Optional[List[int]] = None
    status_history: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.status_history:
            self.status_history.append(self.status.value)

    @classmethod
    def from_planned(cls, planned: PlannedOperation, batch_id: str) -> "Operation":
        """Create a pending operation from a plan entry."""
        destination = planned.destination
        return cls(
            operation_type=planned.operation_type,
            source_path=str(planned.source),
            destination_path=str(destination) if destination else None,
            original_name=planned.source.name,
            new_name=destination.name if destination else None,
            batch_id=batch_id,
        )

    def transition(self, status: OperationStatus) -> None:
        """Move to a new status.

        Raises:
            ValueError: If the lifecycle does not allow the transition.
        """
        if not self.status.can_transition_to(status):
            raise ValueError(
                f"Invalid status transition for operation {self.id}: "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status
        self.status_history.append(status.value)

    def fail(self, reason: str) -> None:
        """Mark the operation failed with a reason."""
        self.transition(OperationStatus.FAILED)
        self.error = reason
        self.backup_path = None
        self.fingerprint = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation_type": self.operation_type.value,
            "source_path": self.source_path,
            "destination_path": self.destination_path,
            "original_name": self.original_name,
            "new_name": self.new_name,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "batch_id": self.batch_id,
            "backup_path": self.backup_path,
            "error": self.error,
            "undo_error": self.undo_error,
            "fingerprint": self.fingerprint,
            "status_history": list(self.status_history),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        fingerprint = data.get("fingerprint")
        return cls(
            id=data["id"],
            operation_type=OperationType(data["operation_type"]),
            source_path=data["source_path"],
            destination_path=data.get("destination_path"),
            original_name=data.get("original_name"),
            new_name=data.get("new_name"),
            timestamp=data.get("timestamp") or _now(),
            status=OperationStatus(data.get("status", "pending")),
            batch_id=data.get("batch_id"),
            backup_path=data.get("backup_path"),
            error=data.get("error"),
            undo_error=data.get("undo_error"),
            fingerprint=list(fingerprint) if fingerprint else None,
            status_history=list(data.get("status_history") or []),
        )


@dataclass
class OperationBatch:
    """Operations executed together and undone as one step."""
    operations: List[Operation] = field(default_factory=list)
    description: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=_now)

    def count(self, status: OperationStatus) -> int:
        return sum(1 for op in self.operations if op.status == status)

    @property
    def is_undoable(self) -> bool:
        """Whether any member can still be reversed."""
        return self.count(OperationStatus.COMPLETED) > 0

    @property
    def undo_state(self) -> UndoState:
        completed = self.count(OperationStatus.COMPLETED)
        undone = self.count(OperationStatus.UNDONE)
        if completed == 0 and undone == 0:
            return UndoState.FAILED
        if undone == 0:
            return UndoState.ACTIVE
        if completed == 0:
            return UndoState.UNDONE
        return UndoState.PARTIALLY_UNDONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "description": self.description,
            "undo_state": self.undo_state.value,
            "operations": [op.to_dict() for op in self.operations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperationBatch":
        return cls(
            id=data["id"],
            created_at=data.get("created_at") or _now(),
            description=data.get("description", ""),
            operations=[Operation.from_dict(op) for op in data.get("operations", [])],
        )
