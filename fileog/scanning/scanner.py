"""
Directory Scanner
=================

Walks a directory tree and produces read-only file descriptors.
Reports progress through a ProgressChannel and honours cancellation
between files.
"""

import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from fileog.config.categories import mime_type_for
from fileog.utils.exceptions import PathNotFound, translate_os_error
from fileog.utils.logging_config import get_logger
from fileog.utils.progress import (
    CancellationToken,
    ProgressChannel,
    ProgressEvent,
    emit,
)

logger = get_logger(__name__)


TEXT_EXTENSIONS = {
    "txt", "md", "markdown", "rst", "text", "log", "csv", "tsv", "json",
    "yaml", "yml", "xml", "html", "htm", "css", "ini", "cfg", "toml",
    "js", "ts", "jsx", "tsx", "py", "rs", "go", "java", "c", "cpp", "h",
    "hpp", "cs", "rb", "php", "sh", "sql", "tex",
}


@dataclass(frozen=True)
class FileDescriptor:
    """Read-only snapshot of one file at scan time.

    Attributes:
        path: Absolute path of the file.
        name: File name including extension.
        extension: Extension without the leading dot ("" if none).
        size: Size in bytes.
        id: Identifier used to correlate plans and results.
        created_at: Creation (ctime) timestamp, seconds.
        modified_at: Modification timestamp, seconds.
    """
    path: Path
    name: str
    extension: str
    size: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = 0.0
    modified_at: float = 0.0

    @property
    def kind(self) -> str:
        """Prompt variant selector: image, text or other."""
        ext = self.extension.lower()
        mime = mime_type_for(ext)
        if mime and mime.startswith("image/") and ext != "svg":
            return "image"
        if ext in TEXT_EXTENSIONS:
            return "text"
        return "other"

    @property
    def mime_type(self) -> Optional[str]:
        return mime_type_for(self.extension)

    @classmethod
    def from_path(cls, file_path: Path) -> "FileDescriptor":
        """Build a descriptor by stat-ing a file.

        Raises:
            FileOperationError: If the file cannot be read.
        """
        file_path = Path(file_path).absolute()
        try:
            stat_info = file_path.stat()
        except OSError as e:
            raise translate_os_error(e, file_path=str(file_path))
        return cls(
            path=file_path,
            name=file_path.name,
            extension=file_path.suffix[1:] if file_path.suffix else "",
            size=stat_info.st_size,
            created_at=stat_info.st_ctime,
            modified_at=stat_info.st_mtime,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileDescriptor":
        """Create from a dictionary such as ``{path, name, extension, size}``."""
        path = Path(data["path"])
        name = data.get("name") or path.name
        extension = data.get("extension")
        if extension is None:
            extension = Path(name).suffix[1:]
        kwargs = {}
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        return cls(
            path=path,
            name=name,
            extension=str(extension).lstrip("."),
            size=int(data.get("size", 0)),
            created_at=float(data.get("created_at", 0.0)),
            modified_at=float(data.get("modified_at", 0.0)),
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "path": str(self.path),
            "name": self.name,
            "extension": self.extension,
            "size": self.size,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
        }


@dataclass
class ScanOptions:
    """Options for a directory scan."""
    path: Path
    recursive: bool = True
    include_hidden: bool = False


class DirectoryScanner:
    """Scans directories into FileDescriptor lists."""

    PROGRESS_EVERY = 10

    def scan(
        self,
        options: ScanOptions,
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[CancellationToken] = None
    ) -> List[FileDescriptor]:
        """Scan a directory.

        Args:
            options: What to scan.
            progress: Optional channel receiving scan events.
            cancel: Optional token checked between files.

        Returns:
            Descriptors for every file found, in walk order.

        Raises:
            PathNotFound: If the root does not exist or is not a directory.
            OperationCancelled: If cancelled before completion.
        """
        root = Path(options.path).expanduser().absolute()
        if not root.is_dir():
            raise PathNotFound(
                f"Scan root is not a directory: {root}",
                file_path=str(root),
            )

        logger.info(f"Scanning {root} (recursive={options.recursive})")
        emit(progress, ProgressEvent.step("started", 0, None))

        files: List[FileDescriptor] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=self._on_walk_error):
            if not options.include_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            dirnames.sort()
            if not options.recursive:
                dirnames[:] = []

            for filename in sorted(filenames):
                if not options.include_hidden and filename.startswith("."):
                    continue
                if cancel is not None and cancel.cancelled:
                    emit(progress, ProgressEvent.step("cancelled", len(files), None))
                    cancel.raise_if_cancelled(completed=len(files))

                file_path = Path(dirpath) / filename
                if not file_path.is_file():
                    continue
                try:
                    descriptor = FileDescriptor.from_path(file_path)
                except PathNotFound:
                    logger.debug(f"File vanished during scan: {file_path}")
                    continue
                files.append(descriptor)

                if len(files) % self.PROGRESS_EVERY == 0:
                    emit(progress, ProgressEvent.step(
                        "scanning", len(files), None, current_file=str(file_path)
                    ))

        emit(progress, ProgressEvent.step("completed", len(files), len(files)))
        logger.info(f"Scan found {len(files)} files in {root}")
        return files

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        logger.warning(f"Cannot read directory during scan: {error}")
