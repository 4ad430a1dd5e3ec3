"""
Configuration Management System
===============================

Provides dataclass-based settings with YAML file loading support.
All settings have sensible defaults; a missing file means defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml

from fileog.utils.exceptions import ConfigurationError
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)


DEFAULT_CONFIG_DIR = Path.home() / ".fileog" / "config"
DEFAULT_DATA_DIR = Path.home() / ".fileog" / "data"


DEFAULT_FILENAME_PROMPT = """Analyze the following file name and decide which category the file belongs to.
File name: {{filename}}
Available categories: {{categories}}
Reply with only the best matching category name and nothing else."""

DEFAULT_TEXT_CONTENT_PROMPT = """Analyze the following file content and decide which category the file belongs to.
File name: {{filename}}
File content (first 1000 characters):
{{content}}
Available categories: {{categories}}
Reply with only the best matching category name and nothing else."""

DEFAULT_IMAGE_PROMPT = """Analyze the content of this image and decide which category it belongs to.
File name: {{filename}}
Available categories: {{categories}}
Reply with only the best matching category name and nothing else."""


@dataclass
class LlmConfig:
    """Language model provider configuration.

    Attributes:
        provider: openai, openai-compatible, claude or ollama.
        api_key: Provider API key (unused for ollama).
        api_endpoint: Base URL or full endpoint of the provider.
        model: Model name.
        supports_vision: Whether the model accepts images.
        temperature: Sampling temperature.
        max_tokens: Response token budget.
    """
    provider: str = "openai"
    api_key: str = ""
    api_endpoint: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    supports_vision: bool = True
    temperature: float = 0.3
    max_tokens: int = 500

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LlmConfig":
        """Create LlmConfig from dictionary."""
        if not data:
            return cls()
        return cls(
            provider=str(data.get("provider", cls.provider)),
            api_key=str(data.get("api_key") or ""),
            api_endpoint=str(data.get("api_endpoint") or ""),
            model=str(data.get("model", cls.model)),
            supports_vision=bool(data.get("supports_vision", cls.supports_vision)),
            temperature=float(data.get("temperature", cls.temperature)),
            max_tokens=int(data.get("max_tokens", cls.max_tokens)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "api_key": self.api_key,
            "api_endpoint": self.api_endpoint,
            "model": self.model,
            "supports_vision": self.supports_vision,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


@dataclass
class LlmSettings:
    """Whether the model path is used, and how to reach it."""
    enabled: bool = False
    config: LlmConfig = field(default_factory=LlmConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LlmSettings":
        if not data:
            return cls()
        return cls(
            enabled=bool(data.get("enabled", False)),
            config=LlmConfig.from_dict(data.get("config", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "config": self.config.to_dict()}


@dataclass
class PromptSettings:
    """Prompt templates for the three prompt variants.

    Templates may use {{filename}}, {{content}}, {{categories}} and {{hints}}.
    """
    filename_prompt: str = DEFAULT_FILENAME_PROMPT
    text_content_prompt: str = DEFAULT_TEXT_CONTENT_PROMPT
    image_prompt: str = DEFAULT_IMAGE_PROMPT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromptSettings":
        if not data:
            return cls()
        return cls(
            filename_prompt=data.get("filename_prompt") or DEFAULT_FILENAME_PROMPT,
            text_content_prompt=data.get("text_content_prompt") or DEFAULT_TEXT_CONTENT_PROMPT,
            image_prompt=data.get("image_prompt") or DEFAULT_IMAGE_PROMPT,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename_prompt": self.filename_prompt,
            "text_content_prompt": self.text_content_prompt,
            "image_prompt": self.image_prompt,
        }


@dataclass
class ClassificationConfig:
    """Classification engine configuration.

    Attributes:
        max_concurrency: Maximum simultaneous model calls per batch.
        timeout_seconds: Per-file model call timeout.
        text_preview_chars: Characters of file content sent to the model.
        fallback_category: Category id used when classification is inconclusive.
    """
    max_concurrency: int = 4
    timeout_seconds: float = 30.0
    text_preview_chars: int = 1000
    fallback_category: str = "others"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationConfig":
        if not data:
            return cls()
        config = cls(
            max_concurrency=int(data.get("max_concurrency", cls.max_concurrency)),
            timeout_seconds=float(data.get("timeout_seconds", cls.timeout_seconds)),
            text_preview_chars=int(data.get("text_preview_chars", cls.text_preview_chars)),
            fallback_category=str(data.get("fallback_category", cls.fallback_category)),
        )
        if config.max_concurrency < 1:
            raise ConfigurationError(
                "max_concurrency must be at least 1",
                config_key="classification.max_concurrency",
                expected_type="int >= 1",
            )
        if config.timeout_seconds <= 0:
            raise ConfigurationError(
                "timeout_seconds must be positive",
                config_key="classification.timeout_seconds",
                expected_type="float > 0",
            )
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_concurrency": self.max_concurrency,
            "timeout_seconds": self.timeout_seconds,
            "text_preview_chars": self.text_preview_chars,
            "fallback_category": self.fallback_category,
        }


@dataclass
class HistoryConfig:
    """Undo history settings.

    Attributes:
        max_batches: Retained undo horizon; older batches and their backups are pruned.
        backup_directory: Where deleted files are kept for undo (None = <data_dir>/backups).
    """
    max_batches: int = 50
    backup_directory: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryConfig":
        if not data:
            return cls()
        backup_dir = data.get("backup_directory")
        config = cls(
            max_batches=int(data.get("max_batches", cls.max_batches)),
            backup_directory=Path(backup_dir).expanduser() if backup_dir else None,
        )
        if config.max_batches < 1:
            raise ConfigurationError(
                "max_batches must be at least 1",
                config_key="history.max_batches",
                expected_type="int >= 1",
            )
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_batches": self.max_batches,
            "backup_directory": str(self.backup_directory) if self.backup_directory else None,
        }


@dataclass
class AppSettings:
    """Main settings container.

    Aggregates all sections; theme and language are carried for the
    presentation layer and not interpreted here.
    """
    theme: str = "system"
    language: str = "en"
    llm: LlmSettings = field(default_factory=LlmSettings)
    prompts: PromptSettings = field(default_factory=PromptSettings)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        """Create AppSettings from dictionary."""
        data = data or {}
        return cls(
            theme=str(data.get("theme", "system")),
            language=str(data.get("language", "en")),
            llm=LlmSettings.from_dict(data.get("llm", {})),
            prompts=PromptSettings.from_dict(data.get("prompts", {})),
            classification=ClassificationConfig.from_dict(data.get("classification", {})),
            history=HistoryConfig.from_dict(data.get("history", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theme": self.theme,
            "language": self.language,
            "llm": self.llm.to_dict(),
            "prompts": self.prompts.to_dict(),
            "classification": self.classification.to_dict(),
            "history": self.history.to_dict(),
        }

    @classmethod
    def load(cls, config_path: Path) -> "AppSettings":
        """Load settings from a YAML file.

        Args:
            config_path: Path to the settings file.

        Returns:
            AppSettings instance (defaults if the file does not exist).

        Raises:
            ConfigurationError: If the file is not valid YAML or has bad values.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            logger.warning(f"Settings file not found at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse settings file: {e}")
            raise ConfigurationError(
                f"Failed to parse settings file: {config_path}",
                cause=e,
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping: {config_path}",
                expected_type="mapping",
            )

        try:
            settings = cls.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid value in settings file: {e}",
                cause=e,
            )
        logger.info(f"Loaded settings from {config_path}")
        return settings

    def save(self, config_path: Path) -> None:
        """Save settings to a YAML file.

        Args:
            config_path: Path where to save the settings.
        """
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = config_path.with_suffix(".yaml.tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        os.replace(tmp_path, config_path)

        logger.info(f"Saved settings to {config_path}")


class SettingsStore:
    """Reads and writes ``settings.yaml`` inside a config directory."""

    DEFAULT_FILE = "settings.yaml"

    def __init__(self, config_dir: Path = DEFAULT_CONFIG_DIR):
        self.config_dir = Path(config_dir)
        self.settings_file = self.config_dir / self.DEFAULT_FILE

    def load(self) -> AppSettings:
        return AppSettings.load(self.settings_file)

    def save(self, settings: AppSettings) -> None:
        settings.save(self.settings_file)
