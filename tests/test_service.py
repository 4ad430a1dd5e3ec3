"""
Integration tests for the FileOrganizer facade and the command line.
"""

import pytest

from fileog.actions.models import OperationStatus, OperationType, PlannedOperation, UndoState
from fileog.config.categories import Category, CategoryRule, RuleType
from fileog.main import main
from fileog.service import FileOrganizer
from fileog.utils.exceptions import ModelUnavailable

from conftest import FakeModelClient


@pytest.fixture
def organizer(tmp_path):
    return FileOrganizer(config_dir=tmp_path / "config", data_dir=tmp_path / "data")


@pytest.fixture
def inbox(tmp_path):
    path = tmp_path / "inbox"
    path.mkdir()
    (path / "a.pdf").write_bytes(b"%PDF-1.4")
    (path / "b.jpg").write_bytes(b"\xff\xd8\xff\xe0")
    (path / "c.unknownext").write_bytes(b"??")
    return path


class TestScenarios:
    """End-to-end scenarios through the facade."""

    def test_scan_and_classify_without_llm(self, organizer, inbox):
        """Test rule hits at 1.0 and an unknown extension in others at 0.0."""
        organizer.save_categories([
            Category(id="documents", name="Documents", target_folder="Documents",
                     rules=(CategoryRule(RuleType.EXTENSION, "pdf", priority=1),)),
            Category(id="images", name="Images", target_folder="Images",
                     rules=(CategoryRule(RuleType.EXTENSION, "jpg", priority=1),)),
            Category(id="others", name="Others", target_folder="Others"),
        ])

        files = organizer.scan_directory(inbox)
        results = organizer.classify_files(files)

        decided = {f.name: (r.suggested_category, r.confidence) for f, r in zip(files, results)}
        assert decided == {
            "a.pdf": ("documents", 1.0),
            "b.jpg": ("images", 1.0),
            "c.unknownext": ("others", 0.0),
        }

    def test_execute_then_undo_latest_batch(self, organizer, inbox, tmp_path):
        """Test undo(1) reverses only the latest batch, restoring both files."""
        older = inbox / "older.txt"
        older.write_text("older")
        organizer.execute_operations([PlannedOperation(
            file_id="older", file_name="older.txt", operation_type=OperationType.MOVE,
            source=older, destination=tmp_path / "Archive" / "older.txt",
        )])
        documents = tmp_path / "Documents"
        organizer.execute_operations([
            {"source": str(inbox / "a.pdf"), "destination": str(documents / "a.pdf"), "operation_type": "move"},
            {"source": str(inbox / "b.jpg"), "operation_type": "delete"},
        ])

        result = organizer.undo_operations(1)

        assert len(result) == 2
        assert (inbox / "a.pdf").read_bytes() == b"%PDF-1.4"
        assert (inbox / "b.jpg").read_bytes() == b"\xff\xd8\xff\xe0"
        assert (tmp_path / "Archive" / "older.txt").exists()
        latest, previous = organizer.get_operation_history(2)
        assert latest.undo_state == UndoState.UNDONE
        assert previous.undo_state == UndoState.ACTIVE

    def test_organize_flow(self, organizer, inbox):
        files = organizer.scan_directory(inbox)
        results = organizer.classify_files(files)
        planned = organizer.plan_operations(files, results, base_directory=inbox)

        operations = organizer.execute_operations(planned)

        assert all(op.status == OperationStatus.COMPLETED for op in operations)
        assert (inbox / "Documents" / "a.pdf").exists()
        assert (inbox / "Images" / "b.jpg").exists()
        assert (inbox / "Others" / "c.unknownext").exists()

    def test_undo_zero_is_noop(self, organizer):
        result = organizer.undo_operations(0)

        assert result.steps_reversed == 0
        assert list(result) == []

    def test_clear_history(self, organizer, inbox):
        organizer.execute_operations([
            {"source": str(inbox / "a.pdf"), "operation_type": "delete"},
        ])

        organizer.clear_history()

        assert organizer.get_operation_history() == []


class TestSettingsSnapshot:
    """Tests that each call reads fresh configuration."""

    def test_llm_enabled_after_saving_settings(self, tmp_path, inbox):
        client = FakeModelClient(answers={"c.unknownext": "Images"})
        organizer = FileOrganizer(
            config_dir=tmp_path / "config",
            data_dir=tmp_path / "data",
            model_client_factory=lambda config: client,
        )
        target = {"path": str(inbox / "c.unknownext"), "name": "c.unknownext", "extension": "unknownext", "size": 2}

        assert organizer.classify_single_file(target).suggested_category == "others"

        settings = organizer.get_settings()
        settings.llm.enabled = True
        organizer.save_settings(settings)

        assert organizer.classify_single_file(target).suggested_category == "images"


class TestLlmConnection:
    """Tests for test_llm_connection."""

    def test_success_message(self, tmp_path):
        client = FakeModelClient(default='{"category": "documents", "confidence": 0.9}')
        organizer = FileOrganizer(tmp_path / "config", tmp_path / "data", lambda config: client)

        message = organizer.test_llm_connection()

        assert message == "Connection successful! Test result: documents (confidence: 90%)"
        assert "test.txt" in client.requests[0].user_prompt
        assert "Documents, Others" in client.requests[0].user_prompt

    def test_failure_raises(self, tmp_path):
        client = FakeModelClient(errors={"test.txt": ModelUnavailable("connection refused")})
        organizer = FileOrganizer(tmp_path / "config", tmp_path / "data", lambda config: client)

        with pytest.raises(ModelUnavailable):
            organizer.test_llm_connection()


class TestCommandLine:
    """Tests for the fileog command."""

    def _run(self, tmp_path, *args):
        return main(["--config-dir", str(tmp_path / "config"), "--data-dir", str(tmp_path / "data"), *args])

    def test_organize_dry_run_changes_nothing(self, tmp_path, inbox, capsys):
        assert self._run(tmp_path, "organize", str(inbox), "--dry-run") == 0

        out = capsys.readouterr().out
        assert "Plan (3 operations)" in out
        assert (inbox / "a.pdf").exists()

    def test_organize_then_undo(self, tmp_path, inbox, capsys):
        assert self._run(tmp_path, "organize", str(inbox)) == 0
        assert (inbox / "Documents" / "a.pdf").exists()

        assert self._run(tmp_path, "undo") == 0
        assert (inbox / "a.pdf").exists()
        assert not (inbox / "Documents" / "a.pdf").exists()

        assert self._run(tmp_path, "history") == 0
        assert "undone" in capsys.readouterr().out

    def test_scan_missing_directory(self, tmp_path, capsys):
        assert self._run(tmp_path, "scan", str(tmp_path / "nope")) == 1
        assert "not a directory" in capsys.readouterr().err

    def test_categories(self, tmp_path, capsys):
        assert self._run(tmp_path, "categories") == 0
        assert "documents" in capsys.readouterr().out
