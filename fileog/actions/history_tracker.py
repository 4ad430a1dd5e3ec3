"""
History Tracker
================

Stores executed operation batches and provides undo.
History is a JSON file so it survives restarts; deleted files live in a
backup area until their batch falls out of the retained history.
"""

import copy
import json
import os
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set

from fileog.actions.models import Operation, OperationBatch, OperationStatus, OperationType
from fileog.utils.exceptions import ErrorCode, FileOperationError, FileOrganizerError
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)

HISTORY_VERSION = 1
INTERRUPTED = "interrupted"


def fingerprint(path: Path) -> Optional[List[int]]:
    """Return [size, mtime_ns] of a file, or None if it is not a regular file."""
    try:
        stat_info = os.stat(path)
    except OSError:
        return None
    if not os.path.isfile(path):
        return None
    return [stat_info.st_size, stat_info.st_mtime_ns]


class BackupArea:
    """Backup slots for deleted files, one directory per batch."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def slot_for(self, batch_id: str, operation_id: str, name: str) -> Path:
        return self.root / batch_id / f"{operation_id}__{name}"

    def remove_batch(self, batch_id: str) -> None:
        batch_dir = self.root / batch_id
        if batch_dir.exists():
            shutil.rmtree(batch_dir)
            logger.debug(f"Removed backups for batch {batch_id}")

    def clear(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)


@dataclass
class UndoFailure:
    """One operation that could not be reversed."""
    operation: Operation
    error: FileOperationError

    def to_dict(self) -> dict:
        return {"operation": self.operation.to_dict(), "error": self.error.to_dict()}


@dataclass
class UndoResult:
    """Outcome of an undo request.

    Iterating yields the reversed operations.
    """
    batch_ids: List[str] = field(default_factory=list)
    undone: List[Operation] = field(default_factory=list)
    failures: List[UndoFailure] = field(default_factory=list)

    @property
    def steps_reversed(self) -> int:
        """Number of batches touched."""
        return len(self.batch_ids)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.undone)

    def __len__(self) -> int:
        return len(self.undone)

    def to_dict(self) -> dict:
        return {
            "batch_ids": list(self.batch_ids),
            "steps_reversed": self.steps_reversed,
            "undone": [op.to_dict() for op in self.undone],
            "failures": [f.to_dict() for f in self.failures],
        }


class HistoryStore:
    """Persistent, single-writer store of operation batches.

    Every mutation happens under one lock and is written to disk before the
    call returns, so two concurrent undo requests cannot reverse the same
    batch twice.
    Batches still being executed are open and cannot be undone until the
    executor finishes them.
    """

    DEFAULT_HISTORY_FILE = "history.json"

    def __init__(
        self,
        data_dir: Path,
        max_batches: int = 50,
        backup_directory: Optional[Path] = None,
        history_file: Optional[Path] = None
    ):
        """Initialize the store and load existing history.

        Args:
            data_dir: Directory holding the history file and default backups.
            max_batches: Number of batches kept; older ones are pruned.
            backup_directory: Backup area root (default: <data_dir>/backups).
            history_file: History file path (default: <data_dir>/history.json).
        """
        self.data_dir = Path(data_dir)
        self.history_file = Path(history_file) if history_file else self.data_dir / self.DEFAULT_HISTORY_FILE
        self.max_batches = max_batches
        self.backups = BackupArea(backup_directory or self.data_dir / "backups")
        self._lock = threading.RLock()
        self._batches: List[OperationBatch] = []
        self._open: Set[str] = set()
        self._load()

    def _load(self) -> None:
        """Load history from disk and reconcile interrupted operations."""
        if not self.history_file.exists():
            return
        try:
            with open(self.history_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._batches = [OperationBatch.from_dict(b) for b in data.get("batches", [])]
        except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError) as e:
            error = FileOrganizerError(
                "History file is corrupted; starting with empty history",
                error_code=ErrorCode.HISTORY_CORRUPTED,
                details={"history_file": str(self.history_file)},
                cause=e,
            )
            logger.error(str(error))
            corrupt = self.history_file.with_suffix(".json.corrupt")
            os.replace(self.history_file, corrupt)
            logger.warning(f"Corrupted history preserved at {corrupt}")
            self._batches = []
            return

        logger.debug(f"Loaded {len(self._batches)} history batches")
        if self._recover():
            self._save()

    def _recover(self) -> bool:
        """Settle operations left in flight by a crash. Returns True if anything changed."""
        changed = False
        for batch in self._batches:
            for op in batch.operations:
                if op.status == OperationStatus.PENDING:
                    op.fail(INTERRUPTED)
                    changed = True
                elif op.status == OperationStatus.IN_PROGRESS:
                    self._reconcile(batch, op)
                    changed = True
        return changed

    def _reconcile(self, batch: OperationBatch, op: Operation) -> None:
        source = Path(op.source_path)
        source_gone = not os.path.lexists(source)

        if op.operation_type == OperationType.DELETE:
            slot = self.backups.slot_for(batch.id, op.id, op.original_name or source.name)
            if source_gone and os.path.lexists(slot):
                op.transition(OperationStatus.COMPLETED)
                op.backup_path = str(slot)
                op.fingerprint = fingerprint(slot)
            else:
                op.fail(INTERRUPTED)
        else:
            destination = Path(op.destination_path) if op.destination_path else None
            finished = destination is not None and os.path.lexists(destination)
            if op.operation_type != OperationType.COPY:
                finished = finished and source_gone
            if finished:
                op.transition(OperationStatus.COMPLETED)
                op.backup_path = str(destination if op.operation_type == OperationType.COPY else source)
                op.fingerprint = fingerprint(destination)
            else:
                op.fail(INTERRUPTED)
        logger.warning(
            f"Recovered interrupted {op.operation_type.value} of {source} as {op.status.value}",
            extra={"operation": op.operation_type.value, "batch_id": batch.id},
        )

    def _save(self) -> None:
        """Write history atomically."""
        self.history_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": HISTORY_VERSION,
            "batches": [batch.to_dict() for batch in self._batches],
        }
        tmp_path = self.history_file.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.history_file)

    def _prune(self) -> None:
        while len(self._batches) > self.max_batches:
            oldest = self._batches.pop(0)
            self.backups.remove_batch(oldest.id)
            logger.info(f"Pruned batch {oldest.id} from history")

    def record(self, batch: OperationBatch) -> None:
        """Insert or update a batch and persist it.

        A new batch is appended (pruning beyond ``max_batches``); a known
        batch is replaced in place.
        """
        with self._lock:
            batch = copy.deepcopy(batch)
            for index, existing in enumerate(self._batches):
                if existing.id == batch.id:
                    self._batches[index] = batch
                    break
            else:
                self._batches.append(batch)
                self._prune()
            self._save()

    def begin(self, batch: OperationBatch) -> None:
        """Record a batch that is about to execute and keep it open."""
        with self._lock:
            self._open.add(batch.id)
            self.record(batch)

    def finish(self, batch: OperationBatch) -> None:
        """Record the final state of an executed batch and close it."""
        with self._lock:
            self._open.discard(batch.id)
            self.record(batch)

    def get(self, batch_id: str) -> Optional[OperationBatch]:
        with self._lock:
            for batch in self._batches:
                if batch.id == batch_id:
                    return copy.deepcopy(batch)
        return None

    def list(self, limit: Optional[int] = None) -> List[OperationBatch]:
        """Return batches most-recent-first.

        Args:
            limit: Maximum number of batches (None for all).
        """
        with self._lock:
            batches = list(reversed(self._batches))
            if limit is not None:
                batches = batches[:max(0, limit)]
            return copy.deepcopy(batches)

    def undo_steps(
        self,
        steps: int,
        reverser: Callable[[Operation], None]
    ) -> UndoResult:
        """Reverse the ``steps`` most recent undoable batches.

        Operations are reversed newest batch first and in reverse order
        within a batch. Open batches are skipped. A failed reversal is recorded and the remaining
        operations are still attempted.

        Args:
            steps: Number of batches to reverse (0 does nothing).
            reverser: Performs the filesystem side of one reversal;
                raises FileOperationError on failure.

        Returns:
            UndoResult with reversed operations and per-item failures.
        """
        result = UndoResult()
        if steps <= 0:
            return result

        with self._lock:
            targets = [
                b for b in reversed(self._batches)
                if b.is_undoable and b.id not in self._open
            ][:steps]
            for batch in targets:
                result.batch_ids.append(batch.id)
                for op in reversed(batch.operations):
                    if op.status != OperationStatus.COMPLETED:
                        continue
                    try:
                        reverser(op)
                    except FileOperationError as e:
                        op.undo_error = e.message
                        result.failures.append(UndoFailure(operation=op, error=e))
                        logger.error(
                            f"Undo failed for {op.operation_type.value} of {op.source_path}: {e}",
                            extra={"operation": op.operation_type.value, "batch_id": batch.id},
                        )
                        continue
                    op.transition(OperationStatus.UNDONE)
                    op.undo_error = None
                    result.undone.append(op)
                self._save()
                logger.info(f"Batch {batch.id} is now {batch.undo_state.value}")

        return result

    def clear(self) -> None:
        """Delete all history and every backup."""
        with self._lock:
            self._batches = []
            self.backups.clear()
            self._save()
        logger.info("History cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._batches)
