"""
Classification Results
======================

The decision produced for one file by the classification pipeline.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


SOURCE_RULE = "rule"
SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"


@dataclass
class ClassificationResult:
    """Result of file classification.

    Attributes:
        file_path: Path of the classified file.
        suggested_category: Category id ("" when the model named no known category).
        confidence: Confidence score (0.0 to 1.0).
        reasoning: Why this category was chosen.
        suggested_name: Optional better filename proposed by the model.
        source: Which stage decided (rule, llm or fallback).
    """
    file_path: str
    suggested_category: str
    confidence: float = 0.0
    reasoning: str = ""
    suggested_name: Optional[str] = None
    source: str = SOURCE_RULE

    def __post_init__(self):
        """Clamp confidence into [0, 1]."""
        self.confidence = min(1.0, max(0.0, float(self.confidence)))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file_path": self.file_path,
            "suggested_category": self.suggested_category,
            "suggested_name": self.suggested_name,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "source": self.source,
        }
