"""
File Operations
===============

Executes planned operations as tracked, reversible units, and reverses
them on undo.

Items in a batch run sequentially and independently: a failing item is
marked failed and the rest of the batch continues. Nothing is ever
overwritten; an existing destination fails with DestinationConflict.
"""

import os
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from fileog.actions.history_tracker import HistoryStore, UndoResult, fingerprint
from fileog.actions.models import (
    Operation,
    OperationBatch,
    OperationStatus,
    OperationType,
    PlannedOperation,
)
from fileog.utils.exceptions import (
    BackupMissing,
    ConflictDetected,
    DestinationConflict,
    FileOperationError,
    PathNotFound,
    translate_os_error,
)
from fileog.utils.logging_config import LogContext, Timer, get_logger, set_correlation_id
from fileog.utils.progress import ProgressChannel, ProgressEvent, emit

logger = get_logger(__name__)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class OperationExecutor:
    """Runs operation batches and records them in the history store."""

    def __init__(self, history: HistoryStore):
        """Initialize the executor.

        Args:
            history: Store that records batches and owns the backup area.
        """
        self.history = history

    def execute(
        self,
        planned: Sequence[PlannedOperation],
        progress: Optional[ProgressChannel] = None,
        description: str = ""
    ) -> List[Operation]:
        """Execute a batch of planned operations.

        The batch is recorded before the first item runs and re-recorded
        after every item. It stays open, and so cannot be undone, until
        every item has run.

        Args:
            planned: Operations to perform, in order.
            progress: Optional channel; one event per finished item.
            description: Human-readable batch description.

        Returns:
            The executed operations with their final status.
        """
        if not planned:
            return []

        batch = OperationBatch(description=description or f"{len(planned)} operations")
        batch.operations = [Operation.from_planned(p, batch.id) for p in planned]
        set_correlation_id(batch.id[:8])
        total = len(batch.operations)

        emit(progress, ProgressEvent.step("started", 0, total))
        self.history.begin(batch)

        with Timer(logger, f"execute batch {batch.id}"):
            try:
                self._run_items(batch, progress)
            finally:
                self.history.finish(batch)

        emit(progress, ProgressEvent.step("completed", total, total))
        failed = batch.count(OperationStatus.FAILED)
        logger.info(f"Batch {batch.id}: {total - failed} completed, {failed} failed")
        return batch.operations

    def _run_items(self, batch: OperationBatch, progress: Optional[ProgressChannel]) -> None:
        total = len(batch.operations)
        for index, op in enumerate(batch.operations, start=1):
            op.transition(OperationStatus.IN_PROGRESS)
            self.history.record(batch)
            with LogContext(operation=op.operation_type.value, file_path=op.source_path, batch_id=batch.id):
                try:
                    self._perform(batch, op)
                    op.transition(OperationStatus.COMPLETED)
                    logger.info(f"{op.operation_type.value}: {op.source_path} -> {op.destination_path or op.backup_path}")
                except FileOperationError as e:
                    op.fail(e.message)
                    logger.error(f"{op.operation_type.value} failed for {op.source_path}: {e}")
            self.history.record(batch)
            emit(progress, ProgressEvent.step("processing", index, total, op.original_name))

    def _perform(self, batch: OperationBatch, op: Operation) -> None:
        source = Path(op.source_path)
        operation = op.operation_type.value
        if not os.path.lexists(source):
            raise PathNotFound("Source file does not exist", file_path=str(source), operation=operation)

        try:
            if op.operation_type == OperationType.DELETE:
                slot = self.history.backups.slot_for(batch.id, op.id, source.name)
                slot.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(source), str(slot))
                op.backup_path = str(slot)
                op.fingerprint = fingerprint(slot)
                return

            if not op.destination_path:
                raise FileOperationError("Operation has no destination", file_path=str(source), operation=operation)
            destination = Path(op.destination_path)
            if os.path.lexists(destination):
                raise DestinationConflict(
                    "Destination already exists",
                    file_path=str(destination),
                    operation=operation,
                )
            destination.parent.mkdir(parents=True, exist_ok=True)

            if op.operation_type == OperationType.COPY:
                if source.is_dir():
                    shutil.copytree(source, destination)
                else:
                    shutil.copy2(source, destination)
                op.backup_path = str(destination)
            else:
                shutil.move(str(source), str(destination))
                op.backup_path = str(source)
            op.fingerprint = fingerprint(destination)
        except OSError as e:
            raise translate_os_error(e, file_path=str(source), operation=operation)

    def undo(self, steps: int) -> UndoResult:
        """Reverse the ``steps`` most recent batches."""
        return self.history.undo_steps(steps, self.reverse_operation)

    def reverse_operation(self, op: Operation) -> None:
        """Undo the filesystem effect of one completed operation.

        Raises:
            BackupMissing: The moved file, copy or backup slot is gone.
            ConflictDetected: The result was modified, or the original path
                is occupied again.
        """
        operation = op.operation_type.value
        if not op.backup_path:
            raise BackupMissing("Operation has no undo information", file_path=op.source_path, operation=operation)

        try:
            if op.operation_type == OperationType.DELETE:
                slot = Path(op.backup_path)
                original = Path(op.source_path)
                if not os.path.lexists(slot):
                    raise BackupMissing("Backup no longer exists", file_path=str(slot), operation=operation)
                if os.path.lexists(original):
                    raise ConflictDetected("Original path is occupied", file_path=str(original), operation=operation)
                original.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(slot), str(original))
            elif op.operation_type == OperationType.COPY:
                created = Path(op.backup_path)
                if not os.path.lexists(created):
                    raise BackupMissing("Copied file no longer exists", file_path=str(created), operation=operation)
                self._check_unchanged(op, created)
                _remove(created)
            else:
                current = Path(op.destination_path)
                original = Path(op.backup_path)
                if not os.path.lexists(current):
                    raise BackupMissing("File is no longer at its destination", file_path=str(current), operation=operation)
                self._check_unchanged(op, current)
                if os.path.lexists(original):
                    raise ConflictDetected("Original path is occupied", file_path=str(original), operation=operation)
                original.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(current), str(original))
        except OSError as e:
            raise translate_os_error(e, file_path=op.source_path, operation=operation)

        logger.info(f"Undone {operation}: {op.destination_path} -> {op.source_path}")

    @staticmethod
    def _check_unchanged(op: Operation, path: Path) -> None:
        if op.fingerprint is None:
            return
        current = fingerprint(path)
        if current is not None and current != list(op.fingerprint):
            raise ConflictDetected(
                "File was modified after the operation",
                file_path=str(path),
                operation=op.operation_type.value,
            )
