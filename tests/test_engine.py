"""
Unit tests for the classification engine.
"""

import pytest

from fileog.classification.engine import ClassificationEngine
from fileog.classification.llm_classifier import LlmClassifier
from fileog.config.categories import Category, CategoryRule, RuleType
from fileog.config.settings import AppSettings
from fileog.utils.exceptions import ModelUnavailable, OperationCancelled
from fileog.utils.progress import CancellationToken, ProgressChannel

from conftest import FakeModelClient, make_descriptor


def _engine(client):
    return ClassificationEngine(llm_classifier=LlmClassifier(client_factory=lambda config: client))


class TestRulePath:
    """Tests for rule-decided files."""

    def test_rule_match_skips_model(self, tmp_path, simple_categories, llm_settings, fake_client):
        """Test that a rule match is final and never calls the model."""
        engine = _engine(fake_client)
        files = [make_descriptor(tmp_path, "a.pdf"), make_descriptor(tmp_path, "b.JPG")]

        results = engine.classify_batch(files, simple_categories, llm_settings)

        assert [r.suggested_category for r in results] == ["documents", "images"]
        assert all(r.confidence == 1.0 for r in results)
        assert fake_client.requests == []

    def test_llm_disabled_falls_back(self, tmp_path, simple_categories, fake_client):
        engine = _engine(fake_client)

        results = engine.classify_batch(
            [make_descriptor(tmp_path, "c.unknownext")], simple_categories, AppSettings()
        )

        assert results[0].suggested_category == "others"
        assert results[0].confidence == 0.0
        assert results[0].source == "fallback"
        assert "disabled" in results[0].reasoning
        assert fake_client.requests == []

    def test_fallback_without_others_category(self, tmp_path, simple_categories, fake_client):
        """Test documents(pdf) and images(jpg) alone still send unknown files to others."""
        documents, images, _ = simple_categories
        files = [
            make_descriptor(tmp_path, "a.pdf"),
            make_descriptor(tmp_path, "b.jpg"),
            make_descriptor(tmp_path, "c.unknownext"),
        ]

        results = _engine(fake_client).classify_batch(files, [documents, images], AppSettings())

        assert [(r.suggested_category, r.confidence) for r in results] == [
            ("documents", 1.0),
            ("images", 1.0),
            ("others", 0.0),
        ]


class TestModelPath:
    """Tests for files sent to the model."""

    def test_unmatched_file_goes_to_model(self, tmp_path, simple_categories, llm_settings):
        client = FakeModelClient(answers={"song.flac": "Documents"})
        engine = _engine(client)

        results = engine.classify_batch(
            [make_descriptor(tmp_path, "a.pdf"), make_descriptor(tmp_path, "song.flac")],
            simple_categories,
            llm_settings,
        )

        assert results[0].source == "rule"
        assert results[1].suggested_category == "documents"
        assert results[1].source == "llm"
        assert len(client.requests) == 1

    def test_keyword_hints_reach_prompt(self, tmp_path, llm_settings):
        client = FakeModelClient(default="Tax")
        categories = [
            Category(
                id="tax",
                name="Tax",
                target_folder="Tax",
                rules=(CategoryRule(RuleType.LLM_KEYWORD, "tax return", priority=1),),
            ),
            Category(id="others", name="Others", target_folder="Others"),
        ]

        results = _engine(client).classify_batch([make_descriptor(tmp_path, "2023.pdf")], categories, llm_settings)

        assert results[0].suggested_category == "tax"
        assert "Tax: tax return" in client.requests[0].user_prompt

    def test_failure_degrades_only_that_file(self, tmp_path, simple_categories, llm_settings):
        client = FakeModelClient(
            answers={"good.xyz": "Images"},
            errors={"bad.xyz": ModelUnavailable("connection refused")},
        )

        results = _engine(client).classify_batch(
            [make_descriptor(tmp_path, "bad.xyz"), make_descriptor(tmp_path, "good.xyz")],
            simple_categories,
            llm_settings,
        )

        assert results[0].suggested_category == "others"
        assert results[0].confidence == 0.0
        assert "connection refused" in results[0].reasoning
        assert results[1].suggested_category == "images"

    def test_timeout_degrades_to_fallback(self, tmp_path, simple_categories, llm_settings):
        llm_settings.classification.timeout_seconds = 0.2
        client = FakeModelClient(answers={"fast.xyz": "Images"}, delays={"slow.xyz": 1.5})

        results = _engine(client).classify_batch(
            [make_descriptor(tmp_path, "slow.xyz"), make_descriptor(tmp_path, "fast.xyz")],
            simple_categories,
            llm_settings,
        )

        assert results[0].source == "fallback"
        assert "timed out" in results[0].reasoning
        assert results[1].suggested_category == "images"

    def test_concurrency_is_bounded(self, tmp_path, simple_categories, llm_settings):
        llm_settings.classification.max_concurrency = 2
        names = [f"file{i}.xyz" for i in range(8)]
        client = FakeModelClient(delays={name: 0.05 for name in names})

        results = _engine(client).classify_batch(
            [make_descriptor(tmp_path, n) for n in names], simple_categories, llm_settings
        )

        assert len(results) == 8
        assert client.max_active <= 2
        assert [r.file_path for r in results] == [str(tmp_path / n) for n in names]

    def test_missing_client_falls_back_for_all(self, tmp_path, simple_categories, llm_settings):
        def factory(config):
            raise ModelUnavailable("API key is not configured")

        engine = ClassificationEngine(llm_classifier=LlmClassifier(client_factory=factory))

        results = engine.classify_batch(
            [make_descriptor(tmp_path, "x.xyz"), make_descriptor(tmp_path, "y.xyz")],
            simple_categories,
            llm_settings,
        )

        assert [r.suggested_category for r in results] == ["others", "others"]

    def test_classify_one(self, tmp_path, simple_categories, llm_settings):
        client = FakeModelClient(errors={"x.xyz": ModelUnavailable("down")})

        result = _engine(client).classify_one(make_descriptor(tmp_path, "x.xyz"), simple_categories, llm_settings)

        assert result.suggested_category == "others"
        assert result.source == "fallback"


class TestProgressAndCancellation:
    """Tests for progress events and cancellation."""

    def test_progress_events(self, tmp_path, simple_categories):
        channel = ProgressChannel()
        files = [make_descriptor(tmp_path, n) for n in ("a.pdf", "b.jpg", "c.zzz")]

        ClassificationEngine().classify_batch(files, simple_categories, AppSettings(), progress=channel)

        events = channel.drain()
        assert events[0].event == "started"
        assert events[-1].event == "completed"
        assert events[-1].percentage == 100.0
        processing = [e for e in events if e.event == "processing"]
        assert [e.completed_count for e in processing] == [1, 2, 3]

    def test_cancelled_before_start(self, tmp_path, simple_categories):
        channel = ProgressChannel()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelled):
            ClassificationEngine().classify_batch(
                [make_descriptor(tmp_path, "a.pdf")], simple_categories, AppSettings(),
                progress=channel, cancel=token,
            )

        assert channel.drain()[-1].event == "cancelled"

    def test_cancelled_during_model_calls(self, tmp_path, simple_categories, llm_settings):
        llm_settings.classification.max_concurrency = 1
        token = CancellationToken()
        client = FakeModelClient(delays={"f": 0.1})

        def listener(event):
            if event.event == "processing":
                token.cancel()

        with pytest.raises(OperationCancelled) as exc_info:
            _engine(client).classify_batch(
                [make_descriptor(tmp_path, f"f{i}.xyz") for i in range(5)],
                simple_categories,
                llm_settings,
                progress=ProgressChannel(listener),
                cancel=token,
            )

        assert exc_info.value.completed >= 1
        assert len(client.requests) < 5
