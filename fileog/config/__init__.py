"""Configuration module for the file organizer."""

from .settings import (
    AppSettings,
    LlmSettings,
    LlmConfig,
    PromptSettings,
    ClassificationConfig,
    HistoryConfig,
    SettingsStore,
    DEFAULT_CONFIG_DIR,
    DEFAULT_DATA_DIR,
)
from .categories import (
    Category,
    CategoryRule,
    RuleType,
    CategoryStore,
    default_categories,
    fallback_category,
    find_category,
    mime_type_for,
)

__all__ = [
    "AppSettings",
    "LlmSettings",
    "LlmConfig",
    "PromptSettings",
    "ClassificationConfig",
    "HistoryConfig",
    "SettingsStore",
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_DATA_DIR",
    "Category",
    "CategoryRule",
    "RuleType",
    "CategoryStore",
    "default_categories",
    "fallback_category",
    "find_category",
    "mime_type_for",
]
