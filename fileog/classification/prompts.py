"""
Prompt Templates
================

Renders the user-editable prompt templates for the three prompt variants.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from fileog.config.categories import Category
from fileog.config.settings import PromptSettings


SYSTEM_PROMPT = """You are a file classification assistant.
You sort files into exactly one of the categories you are given.
Answer with the category name only, or with a JSON object of the form
{"category": "...", "new_name": "...", "confidence": 0.0-1.0, "reasoning": "..."}."""

VARIANT_FILENAME = "filename"
VARIANT_TEXT = "text"
VARIANT_IMAGE = "image"

CATEGORY_JOINER = ", "

_VARIABLE = re.compile(r"\{\{(filename|content|categories|hints)\}\}")


@dataclass(frozen=True)
class RenderedPrompt:
    """A rendered prompt and the variant it was built from."""
    variant: str
    text: str


def render_categories(categories: Sequence[Category]) -> str:
    """Render the category name list offered to the model."""
    return CATEGORY_JOINER.join(c.name for c in categories)


def render_hints(hints: Sequence[tuple]) -> str:
    """Render llmKeyword hints as ``category: keyword`` lines."""
    return "\n".join(f"{name}: {keyword}" for name, keyword in hints)


def render_template(
    template: str,
    filename: str,
    categories: Sequence[Category],
    content: str = "",
    hints: Optional[Sequence[tuple]] = None
) -> str:
    """Substitute template variables verbatim in a single pass.

    Supported variables: {{filename}}, {{content}}, {{categories}}, {{hints}}.
    Hints are appended as a section when the template has no {{hints}}.
    """
    hint_text = render_hints(hints or [])
    values = {
        "filename": filename,
        "content": content,
        "categories": render_categories(categories),
        "hints": hint_text,
    }
    rendered = _VARIABLE.sub(lambda m: values[m.group(1)], template)
    if hint_text and "{{hints}}" not in template:
        rendered += f"\nKeyword hints (category: keyword):\n{hint_text}"
    return rendered


def build_prompt(
    variant: str,
    prompts: PromptSettings,
    filename: str,
    categories: List[Category],
    content: str = "",
    hints: Optional[Sequence[tuple]] = None
) -> RenderedPrompt:
    """Render the template for a prompt variant."""
    templates = {
        VARIANT_FILENAME: prompts.filename_prompt,
        VARIANT_TEXT: prompts.text_content_prompt,
        VARIANT_IMAGE: prompts.image_prompt,
    }
    template = templates[variant]
    return RenderedPrompt(
        variant=variant,
        text=render_template(template, filename, categories, content, hints),
    )
