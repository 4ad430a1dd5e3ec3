"""
Shared fixtures for the fileog test suite.
"""

import threading
import time
from pathlib import Path

import pytest

from fileog.classification.providers import ModelClient
from fileog.config.categories import Category, CategoryRule, RuleType
from fileog.config.settings import AppSettings, LlmConfig
from fileog.scanning.scanner import FileDescriptor


class FakeModelClient(ModelClient):
    """Model client that answers from a lookup table instead of the network.

    Attributes:
        answers: Maps a file name found in the prompt to the raw answer.
        default: Answer when no file name matches.
        errors: Maps a file name to an exception to raise.
        delays: Maps a file name to seconds to sleep before answering.
    """

    provider = "fake"

    def __init__(self, answers=None, default="Others", errors=None, delays=None):
        super().__init__(LlmConfig(provider="fake", api_key="test"))
        self.answers = answers or {}
        self.default = default
        self.errors = errors or {}
        self.delays = delays or {}
        self.requests = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _lookup(self, table, prompt):
        for name, value in table.items():
            if name in prompt:
                return value
        return None

    def complete(self, request, timeout):
        with self._lock:
            self.requests.append(request)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            delay = self._lookup(self.delays, request.user_prompt)
            if delay:
                time.sleep(delay)
            error = self._lookup(self.errors, request.user_prompt)
            if error is not None:
                raise error
            answer = self._lookup(self.answers, request.user_prompt)
            return self.default if answer is None else answer
        finally:
            with self._lock:
                self.active -= 1


def make_descriptor(directory: Path, name: str, content: bytes = None) -> FileDescriptor:
    """Build a descriptor, writing the file first when content is given."""
    path = Path(directory) / name
    if content is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return FileDescriptor.from_path(path)
    suffix = Path(name).suffix
    return FileDescriptor(path=path, name=name, extension=suffix[1:] if suffix else "", size=0)


@pytest.fixture
def fake_client():
    """A fresh fake model client."""
    return FakeModelClient()


@pytest.fixture
def simple_categories():
    """documents (pdf), images (jpg) and a ruleless others bucket."""
    return [
        Category(
            id="documents",
            name="Documents",
            target_folder="Documents",
            rules=(CategoryRule(RuleType.EXTENSION, "pdf", priority=1),),
        ),
        Category(
            id="images",
            name="Images",
            target_folder="Images",
            rules=(CategoryRule(RuleType.EXTENSION, "jpg", priority=1),),
        ),
        Category(id="others", name="Others", target_folder="Others"),
    ]


@pytest.fixture
def llm_settings():
    """Settings with the model path enabled."""
    settings = AppSettings()
    settings.llm.enabled = True
    settings.llm.config = LlmConfig(provider="openai", api_key="test-key")
    return settings
