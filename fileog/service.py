"""
File Organizer Service
======================

Facade exposing every organizer command: scanning, classification,
planning, execution, undo, history, and settings/category management.

Each classification or execution call reads a fresh settings and category
snapshot, so edits made between calls take effect without restarting.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from fileog.actions import (
    HistoryStore,
    Operation,
    OperationBatch,
    OperationExecutor,
    OperationPlanner,
    OperationType,
    PlannedOperation,
    UndoResult,
)
from fileog.classification import (
    ClassificationEngine,
    ClassificationResult,
    LlmClassifier,
    ModelClient,
    RuleMatcher,
    create_model_client,
)
from fileog.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_DATA_DIR,
    AppSettings,
    Category,
    CategoryStore,
    LlmConfig,
    SettingsStore,
    find_category,
)
from fileog.scanning import DirectoryScanner, FileDescriptor, ScanOptions
from fileog.utils.logging_config import get_logger
from fileog.utils.progress import CancellationToken, ProgressChannel

logger = get_logger(__name__)

FileLike = Union[FileDescriptor, Dict[str, Any], str, Path]

TEST_FILE_NAME = "test.txt"


def to_descriptor(file: FileLike) -> FileDescriptor:
    """Accept a descriptor, a ``{path, name, extension, size}`` dict, or a path."""
    if isinstance(file, FileDescriptor):
        return file
    if isinstance(file, dict):
        return FileDescriptor.from_dict(file)
    return FileDescriptor.from_path(Path(file))


class FileOrganizer:
    """Entry point for all organizer commands."""

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        data_dir: Optional[Path] = None,
        model_client_factory: Optional[Callable[[LlmConfig], ModelClient]] = None
    ):
        """Initialize the organizer.

        Args:
            config_dir: Directory for settings.yaml and categories.yaml.
            data_dir: Directory for history and backups.
            model_client_factory: Builds model clients (default: by provider).
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self.settings_store = SettingsStore(self.config_dir)
        self.category_store = CategoryStore(self.config_dir)
        self.scanner = DirectoryScanner()
        self.llm_classifier = LlmClassifier(model_client_factory or create_model_client)
        self.engine = ClassificationEngine(RuleMatcher(), self.llm_classifier)
        self.planner = OperationPlanner()
        self._executor: Optional[OperationExecutor] = None

    @property
    def executor(self) -> OperationExecutor:
        """Executor bound to the history store (created on first use)."""
        if self._executor is None:
            history_config = self.get_settings().history
            history = HistoryStore(
                self.data_dir,
                max_batches=history_config.max_batches,
                backup_directory=history_config.backup_directory,
            )
            self._executor = OperationExecutor(history)
        return self._executor

    @property
    def history(self) -> HistoryStore:
        return self.executor.history

    # Scanning and classification

    def scan_directory(
        self,
        path: Path,
        recursive: bool = True,
        include_hidden: bool = False,
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[CancellationToken] = None
    ) -> List[FileDescriptor]:
        options = ScanOptions(path=Path(path), recursive=recursive, include_hidden=include_hidden)
        return self.scanner.scan(options, progress=progress, cancel=cancel)

    def classify_files(
        self,
        files: Sequence[FileLike],
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[CancellationToken] = None
    ) -> List[ClassificationResult]:
        """Classify files; one result per input, in order."""
        descriptors = [to_descriptor(f) for f in files]
        return self.engine.classify_batch(
            descriptors,
            self.get_categories(),
            self.get_settings(),
            progress=progress,
            cancel=cancel,
        )

    def classify_single_file(self, file: FileLike) -> ClassificationResult:
        return self.engine.classify_one(to_descriptor(file), self.get_categories(), self.get_settings())

    # Operations

    def plan_operations(
        self,
        files: Sequence[FileLike],
        results: Optional[Sequence[ClassificationResult]] = None,
        destination_folder: Optional[Path] = None,
        operation_type: OperationType = OperationType.MOVE,
        base_directory: Optional[Path] = None
    ) -> List[PlannedOperation]:
        """Plan operations from classification results or an explicit folder."""
        descriptors = [to_descriptor(f) for f in files]
        if destination_folder is not None:
            return self.planner.plan_transfer(descriptors, destination_folder, operation_type)
        if results is None:
            raise ValueError("results are required when no destination folder is given")
        return self.planner.plan_for_classification(
            descriptors,
            results,
            self.get_categories(),
            base_directory=base_directory,
            operation_type=operation_type,
            fallback_id=self.get_settings().classification.fallback_category,
        )

    def execute_operations(
        self,
        operations: Sequence[Union[PlannedOperation, Dict[str, Any]]],
        progress: Optional[ProgressChannel] = None,
        description: str = ""
    ) -> List[Operation]:
        planned = [
            op if isinstance(op, PlannedOperation) else PlannedOperation.from_dict(op)
            for op in operations
        ]
        return self.executor.execute(planned, progress=progress, description=description)

    def undo_operations(self, steps: int = 1) -> UndoResult:
        """Reverse the most recent ``steps`` batches."""
        result = self.executor.undo(steps)
        logger.info(
            f"Undo reversed {len(result.undone)} operations in {result.steps_reversed} batches "
            f"({len(result.failures)} failures)"
        )
        return result

    def get_operation_history(self, limit: Optional[int] = None) -> List[OperationBatch]:
        return self.history.list(limit)

    def clear_history(self) -> None:
        self.history.clear()

    # Configuration

    def get_categories(self) -> List[Category]:
        return self.category_store.load()

    def save_categories(self, categories: List[Category]) -> None:
        self.category_store.save(categories)

    def get_settings(self) -> AppSettings:
        return self.settings_store.load()

    def save_settings(self, settings: AppSettings) -> None:
        self.settings_store.save(settings)

    def test_llm_connection(self) -> str:
        """Classify a synthetic file with the configured model.

        Returns:
            Human-readable success message.

        Raises:
            ClassificationError: If the model cannot be reached or answered badly.
        """
        settings = self.get_settings()
        all_categories = self.get_categories()
        categories = [
            c for c in (find_category(all_categories, "documents"), find_category(all_categories, "others"))
            if c is not None
        ] or all_categories

        descriptor = FileDescriptor(
            path=self.data_dir / "connection-test" / TEST_FILE_NAME,
            name=TEST_FILE_NAME,
            extension="txt",
            size=0,
        )
        result = self.llm_classifier.classify(
            descriptor,
            categories,
            settings.prompts,
            settings.llm.config,
            timeout=settings.classification.timeout_seconds,
        )
        return (
            f"Connection successful! Test result: {result.suggested_category or 'unknown'} "
            f"(confidence: {result.confidence * 100:.0f}%)"
        )
