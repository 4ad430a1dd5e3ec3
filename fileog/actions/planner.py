"""
Operation Planner
=================

Turns a selection of files plus a classification (or an explicit
destination) into planned operations with unique destinations.
"""

import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from fileog.actions.models import OperationType, PlannedOperation
from fileog.classification.results import ClassificationResult
from fileog.config.categories import Category, fallback_category, find_category
from fileog.scanning.scanner import FileDescriptor
from fileog.utils.exceptions import FileOperationError
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_SUFFIX = 10000


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))


def _movable(descriptor: FileDescriptor, operation_type: OperationType) -> Optional[Path]:
    return None if operation_type == OperationType.COPY else descriptor.path


class OperationPlanner:
    """Plans move/copy/rename/delete operations.

    Collisions, whether with another planned destination or with a file
    already on disk, are resolved by appending `` (1)``, `` (2)``... before
    the extension, in input order.
    """

    def __init__(self, check_disk: bool = True):
        """Initialize the planner.

        Args:
            check_disk: Also avoid destinations that already exist on disk.
        """
        self.check_disk = check_disk

    def unique_destination(self, desired: Path, reserved: Set[str], source: Optional[Path] = None) -> Path:
        """Find a free destination and reserve it.

        Args:
            desired: Preferred destination path.
            reserved: Destinations already taken by this plan (normalized).
            source: The file being moved or renamed; it never collides with
                itself. Copies pass None so the original counts as taken.

        Returns:
            ``desired`` or the first free suffixed variant.
        """
        stem = desired.stem
        suffix = desired.suffix
        candidate = desired
        counter = 0
        while self._taken(candidate, reserved, source):
            counter += 1
            if counter > MAX_SUFFIX:
                raise FileOperationError(
                    "Too many files with the same name",
                    file_path=str(desired),
                )
            candidate = desired.parent / f"{stem} ({counter}){suffix}"
        reserved.add(os.path.normcase(os.path.abspath(candidate)))
        return candidate

    def _taken(self, candidate: Path, reserved: Set[str], source: Optional[Path]) -> bool:
        if os.path.normcase(os.path.abspath(candidate)) in reserved:
            return True
        if source is not None and _same_path(candidate, source):
            return False
        return self.check_disk and os.path.lexists(candidate)

    def plan_for_classification(
        self,
        files: Sequence[FileDescriptor],
        results: Sequence[ClassificationResult],
        categories: List[Category],
        base_directory: Optional[Path] = None,
        operation_type: OperationType = OperationType.MOVE,
        fallback_id: str = "others"
    ) -> List[PlannedOperation]:
        """Plan moving (or copying) files into their category folders.

        Args:
            files: Files to organize.
            results: Classification results aligned with ``files``.
            categories: Category snapshot.
            base_directory: Root for relative target folders (default: each
                file's own directory).
            operation_type: MOVE or COPY.
            fallback_id: Category used for empty or unknown results.

        Returns:
            Planned operations; files already in place are skipped.
        """
        if len(files) != len(results):
            raise ValueError("files and results must have the same length")
        self._check_transfer_type(operation_type)

        default = fallback_category(categories, fallback_id)
        reserved: Set[str] = set()
        planned = []
        for descriptor, result in zip(files, results):
            category = find_category(categories, result.suggested_category) or default

            folder = Path(category.target_folder).expanduser()
            if not folder.is_absolute():
                folder = Path(base_directory or descriptor.path.parent) / folder
            desired = folder / descriptor.name

            if operation_type == OperationType.MOVE and _same_path(desired, descriptor.path):
                logger.debug(f"{descriptor.name} is already in {category.id}, skipping")
                continue

            destination = self.unique_destination(desired, reserved, _movable(descriptor, operation_type))
            planned.append(PlannedOperation(
                file_id=descriptor.id,
                file_name=descriptor.name,
                operation_type=operation_type,
                source=descriptor.path,
                destination=destination,
                category=category.id,
            ))
        return planned

    def plan_transfer(
        self,
        files: Iterable[FileDescriptor],
        destination_folder: Path,
        operation_type: OperationType = OperationType.MOVE
    ) -> List[PlannedOperation]:
        """Plan moving or copying files into one folder."""
        self._check_transfer_type(operation_type)
        destination_folder = Path(destination_folder).expanduser()
        reserved: Set[str] = set()
        planned = []
        for descriptor in files:
            desired = destination_folder / descriptor.name
            if operation_type == OperationType.MOVE and _same_path(desired, descriptor.path):
                continue
            planned.append(PlannedOperation(
                file_id=descriptor.id,
                file_name=descriptor.name,
                operation_type=operation_type,
                source=descriptor.path,
                destination=self.unique_destination(desired, reserved, _movable(descriptor, operation_type)),
            ))
        return planned

    def plan_rename(self, descriptor: FileDescriptor, new_name: str) -> PlannedOperation:
        """Plan renaming a file within its directory.

        Raises:
            ValueError: If ``new_name`` is empty or contains a path separator.
        """
        new_name = (new_name or "").strip()
        if not new_name or Path(new_name).name != new_name or new_name in (".", ".."):
            raise ValueError(f"Invalid file name: {new_name!r}")
        desired = descriptor.path.parent / new_name
        return PlannedOperation(
            file_id=descriptor.id,
            file_name=descriptor.name,
            operation_type=OperationType.RENAME,
            source=descriptor.path,
            destination=self.unique_destination(desired, set(), descriptor.path),
        )

    def plan_delete(self, files: Iterable[FileDescriptor]) -> List[PlannedOperation]:
        """Plan deleting files (they go to the backup area, see the executor)."""
        return [
            PlannedOperation(
                file_id=descriptor.id,
                file_name=descriptor.name,
                operation_type=OperationType.DELETE,
                source=descriptor.path,
            )
            for descriptor in files
        ]

    def plan(
        self,
        files: Sequence[FileDescriptor],
        results: Optional[Sequence[ClassificationResult]] = None,
        categories: Optional[List[Category]] = None,
        destination_folder: Optional[Path] = None,
        operation_type: OperationType = OperationType.MOVE,
        base_directory: Optional[Path] = None
    ) -> List[PlannedOperation]:
        """Plan from either a classification or an explicit destination folder."""
        if destination_folder is not None:
            return self.plan_transfer(files, destination_folder, operation_type)
        if results is None or categories is None:
            raise ValueError("Either destination_folder or results and categories are required")
        return self.plan_for_classification(
            files, results, categories, base_directory, operation_type
        )

    @staticmethod
    def _check_transfer_type(operation_type: OperationType) -> None:
        if operation_type not in (OperationType.MOVE, OperationType.COPY):
            raise ValueError(f"Expected move or copy, got {operation_type.value}")
