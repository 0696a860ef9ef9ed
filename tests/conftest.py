"""Shared fixtures for mission tracker tests."""

import os
import tempfile
from typing import Optional

import pytest

# Keep module-level app components hermetic
os.environ.setdefault("CACHE_PATH", os.path.join(tempfile.mkdtemp(prefix="mission_tracker_"), "cache.db"))
for _var in ("CLAUDE_API_KEY", "ANTHROPIC_API_KEY", "SUPABASE_URL", "SUPABASE_KEY"):
    os.environ.pop(_var, None)

from mission_tracker.nlp.llm import LanguageModel  # noqa: E402
from mission_tracker.progress.cache import LocalCache  # noqa: E402
from mission_tracker.progress.store import ProgressStore  # noqa: E402


class FakeModel(LanguageModel):
    """Scripted language model recording every call."""

    def __init__(self, replies: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or [])
        self.error = error
        self.calls: list[dict] = []

    @property
    def available(self) -> bool:
        return True

    async def complete(self, messages: list[dict], system: Optional[str] = None) -> str:
        self.calls.append({"messages": messages, "system": system})
        if self.error is not None:
            raise self.error
        if not self.replies:
            return "Nice work, keep it up!"
        return self.replies.pop(0)


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    """Local cache in a temporary directory."""
    return LocalCache(str(tmp_path / "cache.db"))


@pytest.fixture
def store(cache) -> ProgressStore:
    """Local-only progress store with default missions."""
    return ProgressStore(cache)


@pytest.fixture
def fake_model():
    """Factory for scripted language models."""
    return FakeModel
