"""
LLM Classifier
==============

Classifies a single file with a language model. Picks the prompt variant
for the file kind, calls the configured provider, and maps the answer onto
one of the known categories.
"""

import json
import re
from typing import Callable, List, Optional, Sequence, Tuple

from fileog.classification.prompts import (
    SYSTEM_PROMPT,
    VARIANT_FILENAME,
    VARIANT_IMAGE,
    VARIANT_TEXT,
    build_prompt,
)
from fileog.classification.providers import ModelClient, ModelRequest, create_model_client
from fileog.classification.results import SOURCE_LLM, ClassificationResult
from fileog.config.categories import Category, find_category
from fileog.config.settings import LlmConfig, PromptSettings
from fileog.extraction.content_reader import ImagePayload, read_image_payload, read_text_preview
from fileog.scanning.scanner import FileDescriptor
from fileog.utils.exceptions import ClassificationError, ParseError
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.8

_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)
_LABEL = re.compile(r"^(?:category|answer)\s*[:=]\s*", re.IGNORECASE)
_PUNCTUATION = "\"'`*.,:;!?()[]<> \t"


def _strip_fence(text: str) -> str:
    match = _FENCE.match(text)
    return match.group(1) if match else text


def _clean_name(value: str) -> str:
    """Strip quotes, markdown emphasis and trailing punctuation from a name."""
    return _LABEL.sub("", value.strip()).strip(_PUNCTUATION)


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line
    return ""


def _extract_json(text: str) -> Optional[dict]:
    """Parse the outermost ``{...}`` span of a response, if there is one."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_response(
    response_text: str,
    categories: Sequence[Category],
    file_path: str = ""
) -> ClassificationResult:
    """Map a raw model answer onto a category.

    Accepts a bare category name or a JSON object with a ``category`` field,
    optionally wrapped in a markdown code fence.

    Args:
        response_text: Raw model output.
        categories: Categories offered in the prompt.
        file_path: Path of the classified file (for the result).

    Returns:
        ClassificationResult. An unknown category name yields
        ``suggested_category=""`` and confidence 0.

    Raises:
        ParseError: Empty answer, or JSON without a category field.
    """
    text = _strip_fence((response_text or "").strip())
    if not text:
        raise ParseError("Empty response from model", response_excerpt=response_text or "", file_path=file_path)

    suggested_name = None
    reasoning = ""
    confidence = DEFAULT_CONFIDENCE

    data = _extract_json(text)
    if data is not None:
        raw_category = data.get("category")
        if not isinstance(raw_category, str) or not raw_category.strip():
            raise ParseError(
                "Response JSON has no category field",
                response_excerpt=text,
                file_path=file_path,
            )
        name = _clean_name(raw_category)
        suggested_name = data.get("new_name") or data.get("suggested_name") or None
        reasoning = str(data.get("reasoning") or "")
        try:
            confidence = float(data.get("confidence", DEFAULT_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE
    else:
        name = _clean_name(_first_line(text))
        if not name:
            raise ParseError("Empty response from model", response_excerpt=text, file_path=file_path)

    category = find_category(list(categories), name)
    if category is None:
        logger.warning(f"Model answered unknown category '{name}' for {file_path}")
        return ClassificationResult(
            file_path=file_path,
            suggested_category="",
            confidence=0.0,
            reasoning=f"Model answered '{name}', which is not a known category",
            suggested_name=suggested_name,
            source=SOURCE_LLM,
        )

    return ClassificationResult(
        file_path=file_path,
        suggested_category=category.id,
        confidence=confidence,
        reasoning=reasoning or f"Classified by model as {category.name}",
        suggested_name=str(suggested_name) if suggested_name else None,
        source=SOURCE_LLM,
    )


class LlmClassifier:
    """Semantic classification through a pluggable model client."""

    def __init__(self, client_factory: Callable[[LlmConfig], ModelClient] = create_model_client):
        """Initialize the classifier.

        Args:
            client_factory: Builds a ModelClient from an LlmConfig.
        """
        self.client_factory = client_factory

    def create_client(self, llm_config: LlmConfig) -> ModelClient:
        return self.client_factory(llm_config)

    def select_variant(
        self,
        descriptor: FileDescriptor,
        llm_config: LlmConfig,
        preview_chars: int = 1000
    ) -> Tuple[str, str, Optional[ImagePayload]]:
        """Pick the prompt variant for a file.

        Returns:
            (variant, text content, image payload)
        """
        kind = descriptor.kind
        if kind == "image":
            if llm_config.supports_vision:
                payload = read_image_payload(descriptor.path)
                if payload is not None:
                    return VARIANT_IMAGE, "", payload
            return VARIANT_FILENAME, "", None
        if kind == "text":
            preview = read_text_preview(descriptor.path, preview_chars)
            if preview and preview.strip():
                return VARIANT_TEXT, preview, None
        return VARIANT_FILENAME, "", None

    def classify(
        self,
        descriptor: FileDescriptor,
        categories: List[Category],
        prompts: PromptSettings,
        llm_config: LlmConfig,
        hints: Optional[Sequence[tuple]] = None,
        timeout: float = 30.0,
        preview_chars: int = 1000,
        client: Optional[ModelClient] = None
    ) -> ClassificationResult:
        """Classify one file with the model.

        Raises:
            ModelUnavailable: Endpoint unreachable or timed out.
            ModelRejected: Provider returned an error status.
            ParseError: Answer could not be interpreted.
        """
        file_path = str(descriptor.path)
        variant, content, image = self.select_variant(descriptor, llm_config, preview_chars)
        prompt = build_prompt(variant, prompts, descriptor.name, categories, content, hints)
        request = ModelRequest(system_prompt=SYSTEM_PROMPT, user_prompt=prompt.text, image=image)

        try:
            if client is None:
                client = self.create_client(llm_config)
            response_text = client.complete(request, timeout)
        except ClassificationError as e:
            e.details.setdefault("file_path", file_path)
            raise

        logger.debug(f"Model answered for {descriptor.name} ({variant} prompt): {response_text[:100]!r}")
        return parse_response(response_text, categories, file_path)
