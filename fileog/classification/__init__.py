"""Classification module for file categorization."""

from .results import ClassificationResult
from .rule_matcher import RuleMatcher, RuleOutcome, rule_matches
from .prompts import build_prompt, render_template
from .providers import (
    ModelRequest,
    ModelClient,
    OpenAIClient,
    ClaudeClient,
    OllamaClient,
    create_model_client,
)
from .llm_classifier import LlmClassifier, parse_response
from .engine import ClassificationEngine

__all__ = [
    "ClassificationResult",
    "RuleMatcher",
    "RuleOutcome",
    "rule_matches",
    "build_prompt",
    "render_template",
    "ModelRequest",
    "ModelClient",
    "OpenAIClient",
    "ClaudeClient",
    "OllamaClient",
    "create_model_client",
    "LlmClassifier",
    "parse_response",
    "ClassificationEngine",
]
