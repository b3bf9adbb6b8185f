from __future__ import annotations

import os

# must be set before memory_ai.config is imported
os.environ.setdefault("EMBEDDINGS_BACKEND", "stub")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from memory_ai.cache import EmbeddingCache
from memory_ai.db import EmbeddingStore
from memory_ai.embedding.engine import EmbeddingEngine
from memory_ai.embedding.stub_model import StubEmbeddingModel
from memory_ai.providers.mock_provider import MockProvider

DIMS = 384


@pytest.fixture()
def store():
    """In-memory SQLite persistent tier."""
    s = EmbeddingStore("sqlite://")
    yield s
    s.dispose()


@pytest.fixture()
def cache(store):
    return EmbeddingCache(store, max_memory_entries=50)


@pytest.fixture()
def stub_model():
    return StubEmbeddingModel(dims=DIMS)


@pytest.fixture()
def engine(cache):
    return EmbeddingEngine(
        lambda: StubEmbeddingModel(dims=DIMS),
        model_name="stub-384",
        dimension=DIMS,
        cache=cache,
        load_retry_delay=0,
    )


@pytest.fixture()
def mock_provider():
    # health_ttl=0 so every health check probes
    return MockProvider(dimension=DIMS, health_ttl=0)
