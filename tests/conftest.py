"""Shared test fixtures."""

import pytest

from mily.config import Settings
from mily.memory.store import MemoryStore


@pytest.fixture
def memory_path(tmp_path):
    return tmp_path / "memory.ndjson"


@pytest.fixture
def make_settings(memory_path):
    """Build Settings with the conversation log isolated in tmp_path."""

    def _make(**overrides) -> Settings:
        overrides.setdefault("memory_path", memory_path)
        return Settings(**overrides)

    return _make


@pytest.fixture
def memory(memory_path) -> MemoryStore:
    """MemoryStore rooted in a temporary directory."""
    return MemoryStore(memory_path)
