"""
Category Definitions
====================

Defines user-editable categories, their rules, the default category set,
and YAML persistence for the category set.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import os

import yaml

from fileog.utils.exceptions import ConfigurationError
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)


class RuleType(Enum):
    """Kinds of category rule."""
    EXTENSION = "extension"          # Extension equality (comma-separated list allowed)
    NAME_CONTAINS = "nameContains"   # Case-insensitive substring of the filename
    NAME_REGEX = "nameRegex"         # Regular expression searched in the filename
    MIME_TYPE = "mimeType"           # MIME type derived from the extension
    LLM_KEYWORD = "llmKeyword"       # Deferred to the language model as a hint

    @classmethod
    def parse(cls, value: str) -> "RuleType":
        """Parse a rule type, accepting camelCase, snake_case or lowercase."""
        if isinstance(value, cls):
            return value
        normalized = str(value).replace("_", "").lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ConfigurationError(
            f"Unknown rule type: {value}",
            config_key="rule_type",
        )


@dataclass(frozen=True)
class CategoryRule:
    """A deterministic predicate mapping file metadata to a category.

    Attributes:
        rule_type: How the pattern is evaluated.
        pattern: The pattern to match.
        priority: Lower = evaluated first; unique within one category.
        enabled: Whether the rule takes part in matching.
    """
    rule_type: RuleType
    pattern: str
    priority: int = 0
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "rule_type": self.rule_type.value,
            "pattern": self.pattern,
            "priority": self.priority,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryRule":
        """Create from dictionary."""
        return cls(
            rule_type=RuleType.parse(data.get("rule_type", "extension")),
            pattern=str(data.get("pattern", "")),
            priority=int(data.get("priority", 0)),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass(frozen=True)
class Category:
    """A classification target.

    Attributes:
        id: Stable identifier (used in classification results).
        name: Display name (also offered to the language model).
        target_folder: Destination folder, absolute or relative to the organize root.
        rules: Ordered rules for this category.
        description: Optional human description.
        color: Optional display color.
        icon: Optional display icon name.
    """
    id: str
    name: str
    target_folder: str
    rules: tuple = ()
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None

    def sorted_rules(self) -> List[CategoryRule]:
        """Rules in ascending priority order."""
        return sorted(self.rules, key=lambda r: r.priority)

    def validate(self) -> None:
        """Check category invariants.

        Raises:
            ConfigurationError: On missing id or duplicate rule priority.
        """
        if not self.id:
            raise ConfigurationError("Category id must not be empty", config_key="id")
        seen = set()
        for rule in self.rules:
            if rule.priority in seen:
                raise ConfigurationError(
                    f"Duplicate rule priority {rule.priority} in category '{self.id}'",
                    config_key="priority",
                )
            seen.add(rule.priority)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "target_folder": self.target_folder,
            "rules": [rule.to_dict() for rule in self.rules],
            "color": self.color,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        """Create from dictionary."""
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or data.get("id", "")),
            target_folder=str(data.get("target_folder", "")),
            rules=tuple(CategoryRule.from_dict(r) for r in data.get("rules") or []),
            description=data.get("description"),
            color=data.get("color"),
            icon=data.get("icon"),
        )


def _ext_rule(extensions: str) -> tuple:
    return (CategoryRule(RuleType.EXTENSION, extensions, priority=1),)


def default_categories() -> List[Category]:
    """Return the built-in category set."""
    return [
        Category(
            id="documents",
            name="Documents",
            description="PDF, Word, Excel and other documents",
            target_folder="Documents",
            rules=_ext_rule("pdf,doc,docx,xls,xlsx,ppt,pptx,txt,rtf,odt"),
            icon="file-text",
            color="#3B82F6",
        ),
        Category(
            id="images",
            name="Images",
            description="JPG, PNG, GIF and other images",
            target_folder="Images",
            rules=_ext_rule("jpg,jpeg,png,gif,webp,svg,bmp,ico,tiff,heic"),
            icon="image",
            color="#10B981",
        ),
        Category(
            id="videos",
            name="Videos",
            description="MP4, MKV, AVI and other videos",
            target_folder="Videos",
            rules=_ext_rule("mp4,mkv,avi,mov,wmv,flv,webm,m4v"),
            icon="video",
            color="#8B5CF6",
        ),
        Category(
            id="music",
            name="Music",
            description="MP3, FLAC, WAV and other audio",
            target_folder="Music",
            rules=_ext_rule("mp3,flac,wav,aac,ogg,wma,m4a"),
            icon="music",
            color="#F59E0B",
        ),
        Category(
            id="code",
            name="Code",
            description="JS, Python, Rust and other source files",
            target_folder="Code",
            rules=_ext_rule("js,ts,jsx,tsx,py,rs,go,java,c,cpp,h,hpp,cs,rb,php"),
            icon="code",
            color="#EC4899",
        ),
        Category(
            id="archives",
            name="Archives",
            description="ZIP, RAR, 7z and other archives",
            target_folder="Archives",
            rules=_ext_rule("zip,rar,7z,tar,gz,bz2,xz"),
            icon="archive",
            color="#6366F1",
        ),
        Category(
            id="others",
            name="Others",
            description="Everything else",
            target_folder="Others",
            rules=(),
            icon="file",
            color="#71717A",
        ),
    ]


# Static extension -> MIME table used by mimeType rules.
MIME_TYPES: Dict[str, str] = {
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "odt": "application/vnd.oasis.opendocument.text",
    "ods": "application/vnd.oasis.opendocument.spreadsheet",
    "odp": "application/vnd.oasis.opendocument.presentation",
    "rtf": "application/rtf",
    "txt": "text/plain",
    "md": "text/markdown",
    "csv": "text/csv",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "xml": "application/xml",
    "json": "application/json",
    "yaml": "application/yaml",
    "yml": "application/yaml",
    "epub": "application/epub+zip",
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    "ico": "image/vnd.microsoft.icon",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "heic": "image/heic",
    # Video
    "mp4": "video/mp4",
    "m4v": "video/x-m4v",
    "mkv": "video/x-matroska",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "flv": "video/x-flv",
    "webm": "video/webm",
    # Audio
    "mp3": "audio/mpeg",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "wma": "audio/x-ms-wma",
    "m4a": "audio/mp4",
    # Archives
    "zip": "application/zip",
    "rar": "application/vnd.rar",
    "7z": "application/x-7z-compressed",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    "bz2": "application/x-bzip2",
    "xz": "application/x-xz",
    # Code
    "js": "text/javascript",
    "ts": "application/typescript",
    "py": "text/x-python",
    "java": "text/x-java-source",
    "c": "text/x-c",
    "h": "text/x-c",
    "cpp": "text/x-c++",
    "rs": "text/x-rust",
    "go": "text/x-go",
    "sh": "application/x-sh",
}


def mime_type_for(extension: Optional[str]) -> Optional[str]:
    """Look up the MIME type for an extension (with or without leading dot).

    Returns:
        The MIME type, or None for unknown extensions.
    """
    if not extension:
        return None
    return MIME_TYPES.get(extension.lower().lstrip("."))


def find_category(categories: List[Category], key: str) -> Optional[Category]:
    """Find a category by id or name, case-insensitively."""
    if not key:
        return None
    wanted = key.strip().lower()
    for category in categories:
        if category.id.lower() == wanted:
            return category
    for category in categories:
        if category.name.lower() == wanted:
            return category
    return None


def fallback_category(categories: List[Category], preferred_id: str = "others") -> Category:
    """Pick the default bucket for unclassified files.

    Preference order: the configured id, then the last category without
    rules. A category with rules is never used; when none qualifies a
    bucket named after the configured id is returned.
    """
    preferred_id = preferred_id or "others"
    preferred = find_category(categories, preferred_id)
    if preferred:
        return preferred
    ruleless = [c for c in categories if not c.rules]
    if ruleless:
        return ruleless[-1]
    name = preferred_id.replace("_", " ").title()
    return Category(id=preferred_id, name=name, target_folder=name)


class CategoryStore:
    """Loads and saves the category set as YAML."""

    DEFAULT_FILE = "categories.yaml"

    def __init__(self, config_dir: Path, categories_file: Optional[Path] = None):
        """Initialize the store.

        Args:
            config_dir: Directory holding configuration files.
            categories_file: Explicit file path (overrides config_dir).
        """
        self.config_dir = Path(config_dir)
        self.categories_file = Path(categories_file) if categories_file else self.config_dir / self.DEFAULT_FILE

    def load(self) -> List[Category]:
        """Load the category set, falling back to defaults.

        Raises:
            ConfigurationError: If the file exists but is invalid.
        """
        if not self.categories_file.exists():
            logger.debug(f"No categories file at {self.categories_file}, using defaults")
            return default_categories()

        try:
            with open(self.categories_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse categories file: {self.categories_file}",
                cause=e,
            )

        entries = data.get("categories", []) if isinstance(data, dict) else data
        try:
            categories = [Category.from_dict(entry) for entry in entries]
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(
                f"Invalid category entry in {self.categories_file}",
                cause=e,
            )
        for category in categories:
            category.validate()

        logger.debug(f"Loaded {len(categories)} categories")
        return categories

    def save(self, categories: List[Category]) -> None:
        """Validate and persist the category set."""
        ids = set()
        for category in categories:
            category.validate()
            if category.id in ids:
                raise ConfigurationError(
                    f"Duplicate category id: {category.id}",
                    config_key="id",
                )
            ids.add(category.id)

        self.categories_file.parent.mkdir(parents=True, exist_ok=True)
        data = {"categories": [c.to_dict() for c in categories]}
        tmp_file = self.categories_file.with_suffix(".yaml.tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        os.replace(tmp_file, self.categories_file)

        logger.info(f"Saved {len(categories)} categories to {self.categories_file}")
