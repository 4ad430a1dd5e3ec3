"""
Rule Matcher
============

Evaluates category rules against a file descriptor. Rules are evaluated
before any model call; ``llmKeyword`` rules are never resolved here and
only tell the engine to consult the model.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from fileog.config.categories import Category, CategoryRule, RuleType, mime_type_for
from fileog.scanning.scanner import FileDescriptor
from fileog.utils.exceptions import InvalidRule
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RuleOutcome:
    """What rule evaluation decided for one file.

    Attributes:
        category: First category with a matching rule, if any.
        matched_rule: The rule that matched.
        deferred: No rule matched and some category asks for the model.
        hints: (category name, keyword) pairs from llmKeyword rules.
    """
    category: Optional[Category] = None
    matched_rule: Optional[CategoryRule] = None
    deferred: bool = False
    hints: List[tuple] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.category is not None


def _match_extension(rule: CategoryRule, descriptor: FileDescriptor) -> bool:
    ext = descriptor.extension.lower().lstrip(".")
    if not ext:
        return False
    patterns = [p.strip().lower().lstrip(".") for p in rule.pattern.split(",")]
    return ext in patterns


def _match_name_contains(rule: CategoryRule, descriptor: FileDescriptor) -> bool:
    pattern = rule.pattern.lower()
    return bool(pattern) and pattern in descriptor.name.lower()


def _match_name_regex(rule: CategoryRule, descriptor: FileDescriptor) -> bool:
    return bool(_compile(rule.pattern).search(descriptor.name))


def _match_mime_type(rule: CategoryRule, descriptor: FileDescriptor) -> bool:
    mime = mime_type_for(descriptor.extension)
    if mime is None:
        return False
    return mime == rule.pattern.strip().lower()


_EVALUATORS: Dict[RuleType, Callable[[CategoryRule, FileDescriptor], bool]] = {
    RuleType.EXTENSION: _match_extension,
    RuleType.NAME_CONTAINS: _match_name_contains,
    RuleType.NAME_REGEX: _match_name_regex,
    RuleType.MIME_TYPE: _match_mime_type,
}

_regex_cache: Dict[str, "re.Pattern"] = {}


def _compile(pattern: str) -> "re.Pattern":
    compiled = _regex_cache.get(pattern)
    if compiled is None:
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise InvalidRule(
                f"Malformed regular expression: {e}",
                pattern=pattern,
                rule_type=RuleType.NAME_REGEX.value,
                cause=e,
            )
        _regex_cache[pattern] = compiled
    return compiled


def rule_matches(rule: CategoryRule, descriptor: FileDescriptor) -> bool:
    """Evaluate a single rule.

    Returns:
        True if the rule matches. llmKeyword and disabled rules never match.

    Raises:
        InvalidRule: If the rule cannot be evaluated.
    """
    if not rule.enabled:
        return False
    evaluator = _EVALUATORS.get(rule.rule_type)
    if evaluator is None:
        return False
    return evaluator(rule, descriptor)


class RuleMatcher:
    """Matches files to categories using deterministic rules."""

    def evaluate(self, descriptor: FileDescriptor, categories: List[Category]) -> RuleOutcome:
        """Evaluate all categories in order.

        Args:
            descriptor: File to classify.
            categories: Category snapshot, in caller order.

        Returns:
            RuleOutcome; ``category`` set on a match, else ``deferred`` when
            any category carries llmKeyword rules.
        """
        hints = []
        for category in categories:
            for rule in category.sorted_rules():
                if not rule.enabled:
                    continue
                if rule.rule_type == RuleType.LLM_KEYWORD:
                    hints.append((category.name, rule.pattern))
                    continue
                try:
                    if rule_matches(rule, descriptor):
                        logger.debug(
                            f"Rule matched: {rule.rule_type.value} '{rule.pattern}' "
                            f"-> {category.id} for {descriptor.name}"
                        )
                        return RuleOutcome(category=category, matched_rule=rule)
                except InvalidRule as e:
                    logger.warning(f"Skipping rule in category '{category.id}': {e}")

        return RuleOutcome(deferred=bool(hints), hints=hints)

    def match(self, descriptor: FileDescriptor, categories: List[Category]) -> Optional[Category]:
        """Return the first matching category, or None (no match or deferral)."""
        return self.evaluate(descriptor, categories).category
