"""
Configured embedding components and process-wide defaults.

Core classes take their collaborators explicitly; the ``get_*`` helpers
here only build one default instance from ``memory_ai.config`` for callers
that do not need more than one.
"""

from typing import Callable, List, Optional, Sequence

from memory_ai.cache import EmbeddingCache
from memory_ai.config import (
    DATABASE_URL,
    EMBEDDINGS_BACKEND,
    EMBEDDINGS_DIMENSION,
    EMBEDDINGS_MODEL,
    MEMORY_CACHE_SIZE,
)
from memory_ai.db import EmbeddingStore
from memory_ai.embedding.base import EmbeddingModel
from memory_ai.embedding.engine import EmbeddingEngine
from memory_ai.embedding.sentence_transformer_model import SentenceTransformerModel
from memory_ai.embedding.stub_model import StubEmbeddingModel
from memory_ai.errors import InitializationError


def make_model_loader(
    backend: str = EMBEDDINGS_BACKEND,
    model_name: str = EMBEDDINGS_MODEL,
    dimension: int = EMBEDDINGS_DIMENSION,
) -> Callable[[], EmbeddingModel]:
    if backend == "stub":
        return lambda: StubEmbeddingModel(dims=dimension, model_name=f"stub-{dimension}")
    if backend == "sentence-transformers":
        return lambda: SentenceTransformerModel(model_name)
    raise InitializationError(f"embedding backend (invalid EMBEDDINGS_BACKEND={backend})")


_cache: Optional[EmbeddingCache] = None
_engine: Optional[EmbeddingEngine] = None


def get_embedding_cache() -> EmbeddingCache:
    global _cache
    if _cache is None:
        _cache = EmbeddingCache(EmbeddingStore(DATABASE_URL), max_memory_entries=MEMORY_CACHE_SIZE)
    return _cache


def get_embedding_engine() -> EmbeddingEngine:
    global _engine
    if _engine is not None:
        return _engine

    model_name = EMBEDDINGS_MODEL if EMBEDDINGS_BACKEND != "stub" else f"stub-{EMBEDDINGS_DIMENSION}"
    _engine = EmbeddingEngine(
        make_model_loader(),
        model_name=model_name,
        dimension=EMBEDDINGS_DIMENSION,
        cache=get_embedding_cache(),
    )
    return _engine


async def generate_embedding(text: str, use_cache: bool = True) -> List[float]:
    return await get_embedding_engine().generate(text, use_cache=use_cache)


async def generate_batch_embeddings(texts: Sequence[str], use_cache: bool = True) -> List[List[float]]:
    return await get_embedding_engine().generate_batch(texts, use_cache=use_cache)


def is_ready() -> bool:
    return get_embedding_engine().is_ready()


def get_info() -> dict:
    return get_embedding_engine().get_info()
