"""
Unit tests for prompt rendering, model providers and the LLM classifier.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from fileog.classification import providers
from fileog.classification.llm_classifier import LlmClassifier, parse_response
from fileog.classification.prompts import (
    VARIANT_FILENAME,
    VARIANT_IMAGE,
    VARIANT_TEXT,
    build_prompt,
    render_template,
)
from fileog.classification.providers import (
    ClaudeClient,
    ModelRequest,
    OllamaClient,
    OpenAIClient,
    create_model_client,
)
from fileog.config.settings import LlmConfig, PromptSettings
from fileog.extraction.content_reader import ImagePayload
from fileog.utils.exceptions import ModelRejected, ModelUnavailable, ParseError

from conftest import FakeModelClient, make_descriptor


def _response(status=200, json_data=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


class TestPrompts:
    """Tests for prompt templates."""

    def test_variables_substituted(self, simple_categories):
        text = render_template(
            "{{filename}} | {{categories}} | {{content}}",
            "a.pdf",
            simple_categories,
            content="hello",
        )

        assert text == "a.pdf | Documents, Images, Others | hello"

    def test_content_is_not_reinterpreted(self, simple_categories):
        """Test that template syntax inside file content stays verbatim."""
        text = render_template("{{content}}", "a.txt", simple_categories, content="{{filename}}")

        assert text == "{{filename}}"

    def test_hints_appended_when_template_lacks_them(self, simple_categories):
        text = render_template("{{filename}}", "a.pdf", simple_categories, hints=[("Tax", "tax return")])

        assert "Tax: tax return" in text
        assert text.startswith("a.pdf\n")

    def test_build_prompt_uses_variant_template(self, simple_categories):
        prompts = PromptSettings(image_prompt="IMAGE {{filename}}")

        prompt = build_prompt(VARIANT_IMAGE, prompts, "cat.jpg", simple_categories)

        assert prompt.text == "IMAGE cat.jpg"
        assert prompt.variant == VARIANT_IMAGE


class TestParseResponse:
    """Tests for model answer interpretation."""

    def test_bare_category_name(self, simple_categories):
        result = parse_response("  documents.\n", simple_categories, "/x/a.pdf")

        assert result.suggested_category == "documents"
        assert result.confidence == 0.8
        assert result.source == "llm"

    def test_json_answer(self, simple_categories):
        text = '{"category": "Images", "confidence": 0.95, "reasoning": "photo", "new_name": "cat.jpg"}'

        result = parse_response(text, simple_categories)

        assert result.suggested_category == "images"
        assert result.confidence == 0.95
        assert result.reasoning == "photo"
        assert result.suggested_name == "cat.jpg"

    def test_fenced_json_with_out_of_range_confidence(self, simple_categories):
        text = '```json\n{"category": "documents", "confidence": 7}\n```'

        result = parse_response(text, simple_categories)

        assert result.suggested_category == "documents"
        assert result.confidence == 1.0

    def test_unknown_category(self, simple_categories):
        result = parse_response("Spreadsheets", simple_categories)

        assert result.suggested_category == ""
        assert result.confidence == 0.0

    def test_empty_answer(self, simple_categories):
        with pytest.raises(ParseError):
            parse_response("   ", simple_categories)

    def test_json_without_category(self, simple_categories):
        with pytest.raises(ParseError):
            parse_response('{"confidence": 0.9}', simple_categories)


class TestVariantSelection:
    """Tests for prompt variant selection by file kind."""

    @pytest.fixture
    def classifier(self):
        return LlmClassifier(client_factory=lambda config: FakeModelClient())

    def test_text_file_uses_content(self, classifier, tmp_path):
        descriptor = make_descriptor(tmp_path, "notes.txt", "é".encode("utf-8") * 1500)

        variant, content, image = classifier.select_variant(descriptor, LlmConfig(), preview_chars=1000)

        assert variant == VARIANT_TEXT
        assert content == "é" * 1000
        assert image is None

    def test_binary_text_extension_falls_back_to_filename(self, classifier, tmp_path):
        descriptor = make_descriptor(tmp_path, "weird.txt", b"\x00\x01\x02")

        variant, content, _ = classifier.select_variant(descriptor, LlmConfig())

        assert variant == VARIANT_FILENAME
        assert content == ""

    def test_image_with_vision(self, classifier, tmp_path):
        descriptor = make_descriptor(tmp_path, "photo.png", b"\x89PNG fake")

        variant, _, image = classifier.select_variant(descriptor, LlmConfig(supports_vision=True))

        assert variant == VARIANT_IMAGE
        assert image.mime_type == "image/png"

    def test_image_without_vision_uses_filename(self, classifier, tmp_path):
        descriptor = make_descriptor(tmp_path, "photo.png", b"\x89PNG fake")

        variant, _, image = classifier.select_variant(descriptor, LlmConfig(supports_vision=False))

        assert variant == VARIANT_FILENAME
        assert image is None

    def test_other_kind_uses_filename(self, classifier, tmp_path):
        variant, _, _ = classifier.select_variant(make_descriptor(tmp_path, "archive.zip"), LlmConfig())

        assert variant == VARIANT_FILENAME


class TestLlmClassifier:
    """Tests for LlmClassifier.classify."""

    def test_classify_maps_answer(self, tmp_path, simple_categories):
        client = FakeModelClient(answers={"song.xyz": "Images"})
        classifier = LlmClassifier(client_factory=lambda config: client)

        result = classifier.classify(
            make_descriptor(tmp_path, "song.xyz"),
            simple_categories,
            PromptSettings(),
            LlmConfig(api_key="k"),
        )

        assert result.suggested_category == "images"
        assert "song.xyz" in client.requests[0].user_prompt
        assert "Documents, Images, Others" in client.requests[0].user_prompt

    def test_provider_error_carries_file_path(self, tmp_path, simple_categories):
        client = FakeModelClient(errors={"a.xyz": ModelRejected("quota", status_code=429)})
        classifier = LlmClassifier(client_factory=lambda config: client)

        with pytest.raises(ModelRejected) as exc_info:
            classifier.classify(
                make_descriptor(tmp_path, "a.xyz"),
                simple_categories,
                PromptSettings(),
                LlmConfig(api_key="k"),
            )

        assert exc_info.value.details["file_path"].endswith("a.xyz")
        assert exc_info.value.status_code == 429


class TestOpenAIClient:
    """Tests for the OpenAI-compatible provider."""

    @pytest.fixture
    def client(self):
        return OpenAIClient(LlmConfig(api_key="sk-test", api_endpoint="https://api.openai.com/v1"))

    def test_endpoint_completion(self, client):
        assert client.endpoint() == "https://api.openai.com/v1/chat/completions"

    @patch("fileog.classification.providers.requests.post")
    def test_complete(self, mock_post, client):
        mock_post.return_value = _response(json_data={"choices": [{"message": {"content": "documents"}}]})

        answer = client.complete(ModelRequest("system", "user"), timeout=5)

        assert answer == "documents"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == 5
        assert kwargs["json"]["temperature"] == 0.3
        assert kwargs["json"]["max_tokens"] == 500

    @patch("fileog.classification.providers.requests.post")
    def test_image_sent_as_data_url(self, mock_post, client):
        mock_post.return_value = _response(json_data={"choices": [{"message": {"content": "images"}}]})
        image = ImagePayload(mime_type="image/png", data_base64="QUJD")

        client.complete(ModelRequest("system", "user", image), timeout=5)

        content = mock_post.call_args.kwargs["json"]["messages"][1]["content"]
        assert content[1]["image_url"]["url"] == "data:image/png;base64,QUJD"

    @patch("fileog.classification.providers.requests.post")
    def test_error_status(self, mock_post, client):
        mock_post.return_value = _response(status=401, text="invalid api key")

        with pytest.raises(ModelRejected) as exc_info:
            client.complete(ModelRequest("system", "user"), timeout=5)

        assert exc_info.value.status_code == 401

    @patch("fileog.classification.providers.requests.post")
    def test_connection_error(self, mock_post, client):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ModelUnavailable):
            client.complete(ModelRequest("system", "user"), timeout=5)

    @patch("fileog.classification.providers.requests.post")
    def test_timeout(self, mock_post, client):
        mock_post.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(ModelUnavailable):
            client.complete(ModelRequest("system", "user"), timeout=5)

    @patch("fileog.classification.providers.requests.post")
    def test_empty_choices(self, mock_post, client):
        mock_post.return_value = _response(json_data={"choices": []})

        with pytest.raises(ParseError):
            client.complete(ModelRequest("system", "user"), timeout=5)

    @patch("fileog.classification.providers.requests.post")
    def test_undecodable_body(self, mock_post, client):
        mock_post.return_value = _response(json_data=ValueError("not json"), text="<html>")

        with pytest.raises(ParseError):
            client.complete(ModelRequest("system", "user"), timeout=5)


class TestClaudeClient:
    """Tests for the Anthropic provider."""

    @patch("fileog.classification.providers.requests.post")
    def test_complete(self, mock_post):
        client = ClaudeClient(LlmConfig(provider="claude", api_key="ak", api_endpoint="", model="claude-x"))
        mock_post.return_value = _response(json_data={"content": [{"type": "text", "text": "images"}]})

        answer = client.complete(ModelRequest("system", "user"), timeout=5)

        assert answer == "images"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.anthropic.com/v1/messages"
        assert kwargs["headers"]["x-api-key"] == "ak"
        assert kwargs["headers"]["anthropic-version"] == "2023-06-01"
        assert kwargs["json"]["system"] == "system"


class TestOllamaClient:
    """Tests for the Ollama provider."""

    def test_host_strips_api_path(self):
        client = OllamaClient(LlmConfig(provider="ollama", api_endpoint="http://localhost:11434/api/chat"))

        assert client.host() == "http://localhost:11434"

    def test_complete(self, monkeypatch):
        chat = MagicMock(return_value={"message": {"content": "music"}})
        fake_ollama = SimpleNamespace(
            Client=MagicMock(return_value=SimpleNamespace(chat=chat)),
            ResponseError=type("ResponseError", (Exception,), {}),
        )
        monkeypatch.setattr(providers, "ollama", fake_ollama)
        client = OllamaClient(LlmConfig(provider="ollama", api_endpoint="", model="llava"))

        answer = client.complete(
            ModelRequest("system", "user", ImagePayload("image/jpeg", "QUJD")),
            timeout=7,
        )

        assert answer == "music"
        fake_ollama.Client.assert_called_once_with(host="http://localhost:11434", timeout=7)
        messages = chat.call_args.kwargs["messages"]
        assert messages[1]["images"] == ["QUJD"]


class TestCreateModelClient:
    """Tests for provider selection."""

    @pytest.mark.parametrize("provider,expected", [
        ("openai", OpenAIClient),
        ("openai-compatible", OpenAIClient),
        ("claude", ClaudeClient),
        ("something-new", OpenAIClient),
    ])
    def test_selects_by_provider(self, provider, expected):
        assert isinstance(create_model_client(LlmConfig(provider=provider, api_key="k")), expected)

    def test_ollama_needs_no_key(self):
        assert isinstance(create_model_client(LlmConfig(provider="ollama")), OllamaClient)

    def test_missing_key(self):
        with pytest.raises(ModelUnavailable):
            create_model_client(LlmConfig(provider="openai", api_key=""))

    def test_base_client_is_abstract(self):
        with pytest.raises(TypeError):
            providers.ModelClient(LlmConfig())
