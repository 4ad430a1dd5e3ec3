"""
Unit tests for operation planning.
"""

import pytest

from fileog.actions.models import OperationType
from fileog.actions.planner import OperationPlanner
from fileog.classification.results import ClassificationResult

from conftest import make_descriptor


def _result(descriptor, category):
    return ClassificationResult(file_path=str(descriptor.path), suggested_category=category, confidence=1.0)


class TestCollisions:
    """Tests for the collision policy."""

    def test_same_name_into_same_folder(self, tmp_path):
        """Test two report.pdf files get distinct, deterministic destinations."""
        files = [
            make_descriptor(tmp_path / "a", "report.pdf", b"one"),
            make_descriptor(tmp_path / "b", "report.pdf", b"two"),
        ]
        target = tmp_path / "out"

        planned = OperationPlanner().plan_transfer(files, target)

        assert [p.destination for p in planned] == [target / "report.pdf", target / "report (1).pdf"]

    def test_existing_file_on_disk_is_avoided(self, tmp_path):
        target = tmp_path / "out"
        target.mkdir()
        (target / "notes.txt").write_text("already here")
        files = [make_descriptor(tmp_path / "src", "notes.txt", b"new")]

        planned = OperationPlanner().plan_transfer(files, target, OperationType.COPY)

        assert planned[0].destination == target / "notes (1).txt"

    def test_copy_into_own_folder_gets_suffix(self, tmp_path):
        """Test a copy never targets its own source."""
        files = [make_descriptor(tmp_path, "report.pdf", b"pdf")]

        planned = OperationPlanner().plan_transfer(files, tmp_path, OperationType.COPY)

        assert planned[0].destination == tmp_path / "report (1).pdf"

    def test_move_into_own_folder_is_skipped(self, tmp_path):
        files = [make_descriptor(tmp_path, "report.pdf", b"pdf")]

        assert OperationPlanner().plan_transfer(files, tmp_path) == []

    def test_disk_check_can_be_disabled(self, tmp_path):
        target = tmp_path / "out"
        target.mkdir()
        (target / "notes.txt").write_text("already here")
        files = [make_descriptor(tmp_path / "src", "notes.txt", b"new")]

        planned = OperationPlanner(check_disk=False).plan_transfer(files, target)

        assert planned[0].destination == target / "notes.txt"


class TestClassificationPlanning:
    """Tests for classification-driven planning."""

    def test_relative_target_under_base_directory(self, tmp_path, simple_categories):
        files = [make_descriptor(tmp_path, "a.pdf", b"pdf"), make_descriptor(tmp_path, "b.jpg", b"jpg")]
        results = [_result(files[0], "documents"), _result(files[1], "images")]

        planned = OperationPlanner().plan_for_classification(
            files, results, simple_categories, base_directory=tmp_path
        )

        assert [p.destination for p in planned] == [
            tmp_path / "Documents" / "a.pdf",
            tmp_path / "Images" / "b.jpg",
        ]
        assert [p.category for p in planned] == ["documents", "images"]
        assert all(p.operation_type == OperationType.MOVE for p in planned)

    def test_unknown_category_goes_to_fallback(self, tmp_path, simple_categories):
        files = [make_descriptor(tmp_path, "c.xyz", b"?")]

        planned = OperationPlanner().plan_for_classification(
            files, [_result(files[0], "")], simple_categories, base_directory=tmp_path
        )

        assert planned[0].destination == tmp_path / "Others" / "c.xyz"
        assert planned[0].category == "others"

    def test_fallback_folder_without_others_category(self, tmp_path, simple_categories):
        documents, images, _ = simple_categories
        files = [make_descriptor(tmp_path, "c.unknownext", b"?")]

        planned = OperationPlanner().plan_for_classification(
            files, [_result(files[0], "others")], [documents, images], base_directory=tmp_path
        )

        assert planned[0].destination == tmp_path / "Others" / "c.unknownext"
        assert planned[0].category == "others"

    def test_copy_already_in_place_is_duplicated(self, tmp_path, simple_categories):
        files = [make_descriptor(tmp_path / "Documents", "a.pdf", b"pdf")]

        planned = OperationPlanner().plan_for_classification(
            files, [_result(files[0], "documents")], simple_categories,
            base_directory=tmp_path, operation_type=OperationType.COPY,
        )

        assert planned[0].destination == tmp_path / "Documents" / "a (1).pdf"

    def test_file_already_in_place_is_skipped(self, tmp_path, simple_categories):
        files = [make_descriptor(tmp_path / "Documents", "a.pdf", b"pdf")]

        planned = OperationPlanner().plan_for_classification(
            files, [_result(files[0], "documents")], simple_categories, base_directory=tmp_path
        )

        assert planned == []

    def test_mismatched_lengths(self, tmp_path, simple_categories):
        with pytest.raises(ValueError):
            OperationPlanner().plan_for_classification(
                [make_descriptor(tmp_path, "a.pdf")], [], simple_categories
            )


class TestRenameAndDelete:
    """Tests for rename and delete planning."""

    def test_rename_stays_in_directory(self, tmp_path):
        descriptor = make_descriptor(tmp_path, "scan001.pdf", b"pdf")

        planned = OperationPlanner().plan_rename(descriptor, "invoice-2024.pdf")

        assert planned.operation_type == OperationType.RENAME
        assert planned.destination == tmp_path / "invoice-2024.pdf"

    @pytest.mark.parametrize("name", ["", "../escape.pdf", "sub/dir.pdf", ".."])
    def test_rename_rejects_bad_names(self, tmp_path, name):
        with pytest.raises(ValueError):
            OperationPlanner().plan_rename(make_descriptor(tmp_path, "a.pdf"), name)

    def test_delete(self, tmp_path):
        files = [make_descriptor(tmp_path, "a.pdf"), make_descriptor(tmp_path, "b.jpg")]

        planned = OperationPlanner().plan_delete(files)

        assert [p.operation_type for p in planned] == [OperationType.DELETE] * 2
        assert all(p.destination is None for p in planned)
