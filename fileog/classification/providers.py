"""
Model Providers
===============

Pluggable model-call capability. Each client turns a ModelRequest into the
raw response text of one chat completion, and maps transport and provider
failures onto ModelUnavailable / ModelRejected / ParseError.

Supported providers: OpenAI and OpenAI-compatible endpoints, Anthropic
Claude, and local Ollama models.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from fileog.config.settings import LlmConfig
from fileog.extraction.content_reader import ImagePayload
from fileog.utils.exceptions import ModelRejected, ModelUnavailable, ParseError
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy import for ollama
ollama = None


def _import_ollama():
    """Lazy import ollama."""
    global ollama
    if ollama is None:
        import ollama as _ollama
        ollama = _ollama
    return ollama


OPENAI_DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
CLAUDE_DEFAULT_ENDPOINT = "https://api.anthropic.com/v1/messages"
OLLAMA_DEFAULT_HOST = "http://localhost:11434"
ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class ModelRequest:
    """One classification request to a chat model."""
    system_prompt: str
    user_prompt: str
    image: Optional[ImagePayload] = None


class ModelClient(ABC):
    """Base class for model-call capabilities."""

    provider = "base"

    def __init__(self, config: LlmConfig):
        self.config = config

    @abstractmethod
    def complete(self, request: ModelRequest, timeout: float) -> str:
        """Send a request and return the raw response text.

        Raises:
            ModelUnavailable: Endpoint unreachable or timed out.
            ModelRejected: Provider returned an error status.
            ParseError: Response body could not be read.
        """
        pass


class HttpModelClient(ModelClient):
    """Shared request/response handling for HTTP JSON providers."""

    def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise ModelUnavailable(
                f"Request to {self.provider} timed out after {timeout}s",
                details={"endpoint": url},
                cause=e,
            )
        except requests.exceptions.RequestException as e:
            raise ModelUnavailable(
                f"Cannot reach {self.provider} endpoint",
                details={"endpoint": url},
                cause=e,
            )

        if not response.ok:
            raise ModelRejected(
                f"{self.provider} API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                f"Failed to decode {self.provider} response",
                response_excerpt=response.text,
                cause=e,
            )


class OpenAIClient(HttpModelClient):
    """OpenAI (and OpenAI-compatible) chat completions."""

    provider = "openai"

    def endpoint(self) -> str:
        endpoint = self.config.api_endpoint.strip()
        if not endpoint:
            return OPENAI_DEFAULT_ENDPOINT
        endpoint = endpoint.rstrip("/")
        if not endpoint.endswith("/chat/completions"):
            endpoint += "/chat/completions"
        return endpoint

    def build_payload(self, request: ModelRequest) -> Dict[str, Any]:
        if request.image is not None:
            user_content: Any = [
                {"type": "text", "text": request.user_prompt},
                {"type": "image_url", "image_url": {"url": request.image.data_url}},
            ]
        else:
            user_content = request.user_prompt
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": user_content},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    def complete(self, request: ModelRequest, timeout: float) -> str:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        data = self._post(self.endpoint(), headers, self.build_payload(request), timeout)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError("Empty response from openai", response_excerpt=str(data), cause=e)
        if not isinstance(content, str):
            raise ParseError("Empty response from openai", response_excerpt=str(data))
        return content


class ClaudeClient(HttpModelClient):
    """Anthropic messages API."""

    provider = "claude"

    def endpoint(self) -> str:
        endpoint = self.config.api_endpoint.strip().rstrip("/")
        if not endpoint:
            return CLAUDE_DEFAULT_ENDPOINT
        if endpoint.endswith("/messages"):
            return endpoint
        if endpoint.endswith("/v1"):
            return endpoint + "/messages"
        return endpoint + "/v1/messages"

    def build_payload(self, request: ModelRequest) -> Dict[str, Any]:
        content = []
        if request.image is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": request.image.mime_type,
                    "data": request.image.data_base64,
                },
            })
        content.append({"type": "text", "text": request.user_prompt})
        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "system": request.system_prompt,
            "messages": [{"role": "user", "content": content}],
        }

    def complete(self, request: ModelRequest, timeout: float) -> str:
        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        data = self._post(self.endpoint(), headers, self.build_payload(request), timeout)
        blocks = data.get("content") if isinstance(data, dict) else None
        for block in blocks or []:
            if isinstance(block, dict) and block.get("type") == "text":
                return block.get("text", "")
        raise ParseError("Empty response from claude", response_excerpt=str(data))


class OllamaClient(ModelClient):
    """Local models served by Ollama."""

    provider = "ollama"

    def host(self) -> str:
        host = self.config.api_endpoint.strip().rstrip("/")
        if not host:
            return OLLAMA_DEFAULT_HOST
        for suffix in ("/api/chat", "/api"):
            if host.endswith(suffix):
                host = host[: -len(suffix)]
                break
        return host

    def complete(self, request: ModelRequest, timeout: float) -> str:
        ollama = _import_ollama()
        user_message: Dict[str, Any] = {"role": "user", "content": request.user_prompt}
        if request.image is not None:
            user_message["images"] = [request.image.data_base64]

        client = ollama.Client(host=self.host(), timeout=timeout)
        try:
            response = client.chat(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": request.system_prompt},
                    user_message,
                ],
                options={
                    "temperature": self.config.temperature,
                    "num_predict": self.config.max_tokens,
                },
            )
        except ollama.ResponseError as e:
            raise ModelRejected(
                f"ollama API error {e.status_code}: {e.error}",
                status_code=e.status_code,
                cause=e,
            )
        except Exception as e:
            raise ModelUnavailable(
                "Cannot reach ollama endpoint",
                details={"endpoint": self.host()},
                cause=e,
            )

        try:
            return response["message"]["content"] or ""
        except (KeyError, TypeError) as e:
            raise ParseError("Empty response from ollama", response_excerpt=str(response), cause=e)


_CLIENTS = {
    "openai": OpenAIClient,
    "openai-compatible": OpenAIClient,
    "claude": ClaudeClient,
    "anthropic": ClaudeClient,
    "ollama": OllamaClient,
}


def create_model_client(config: LlmConfig) -> ModelClient:
    """Create the client for the configured provider.

    Unknown providers are treated as OpenAI-compatible.

    Raises:
        ModelUnavailable: If a hosted provider has no API key.
    """
    provider = (config.provider or "").lower()
    client_cls = _CLIENTS.get(provider)
    if client_cls is None:
        logger.debug(f"Unknown provider '{config.provider}', using OpenAI-compatible client")
        client_cls = OpenAIClient
    if client_cls is not OllamaClient and not config.api_key:
        raise ModelUnavailable(
            "API key is not configured",
            details={"provider": config.provider},
        )
    return client_cls(config)
