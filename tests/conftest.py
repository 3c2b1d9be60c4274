"""Pytest configuration and shared fixtures for simple-memory tests.

This module provides reusable fixtures for testing:
- env_setup: (autouse) Clears MCP_MEMORY_* / GEMINI_API_KEY so tests see defaults
- temp_dir: Temporary directory for file operations
- fake_provider: Deterministic bag-of-words embedding provider
- store / hybrid / tools: An in-memory stack wired like the real server

Usage:
    async def test_something(tools):
        result = await tools.mem_save(text="hello")
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from simple_memory.embedding import EmbeddingAdapter, EmbeddingWorker
from simple_memory.errors import EmbeddingError
from simple_memory.storage import HybridStore, SQLiteStore
from simple_memory.tools import MemoryTools

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]

VOCABULARY = (
    "auth",
    "token",
    "login",
    "password",
    "deploy",
    "server",
    "database",
    "cat",
    "dog",
)


class FakeProvider:
    """Embeds text as counts of VOCABULARY words, so similarity is predictable.

    Texts sharing vocabulary words point in similar directions; texts with
    no vocabulary words get the zero vector.
    """

    def __init__(self, dims: int = len(VOCABULARY)):
        self.dims = dims
        self.calls: list[str] = []
        self.fail = False
        self.closed = False

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("provider down")
        lowered = text.casefold()
        vector = [float(lowered.count(word)) for word in VOCABULARY]
        return (vector + [0.0] * self.dims)[: self.dims]

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def env_setup() -> Generator[None, None, None]:
    """Remove configuration variables so every test starts from defaults."""
    names = [k for k in os.environ if k.startswith("MCP_MEMORY_")] + ["GEMINI_API_KEY"]
    original = {k: os.environ.get(k) for k in names}
    for key in names:
        os.environ.pop(key, None)
    yield
    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test file operations.

    Yields:
        Path: Path to the temporary directory (cleaned up after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store() -> Generator[SQLiteStore, None, None]:
    """Provide in-memory SQLiteStore instance for testing."""
    s = SQLiteStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def adapter(fake_provider: FakeProvider) -> EmbeddingAdapter:
    return EmbeddingAdapter(fake_provider)


@pytest.fixture
def worker(store: SQLiteStore, adapter: EmbeddingAdapter) -> Generator[EmbeddingWorker, None, None]:
    w = EmbeddingWorker(store, adapter)
    yield w
    w.shutdown(timeout=5)


@pytest.fixture
def hybrid(store: SQLiteStore, adapter: EmbeddingAdapter, worker: EmbeddingWorker) -> HybridStore:
    """HybridStore with semantic search enabled through FakeProvider."""
    return HybridStore(sqlite_store=store, adapter=adapter, worker=worker)


@pytest.fixture
def keyword_hybrid(store: SQLiteStore) -> HybridStore:
    """HybridStore without an embedding provider."""
    return HybridStore(sqlite_store=store, adapter=EmbeddingAdapter(None), worker=None)


@pytest.fixture
def tools(hybrid: HybridStore) -> MemoryTools:
    return MemoryTools(hybrid)
