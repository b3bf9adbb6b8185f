"""
Embedding engine: one embedding model plus the cache in front of it.

Model loading is lazy and idempotent. The first ``initialize()`` starts a
single load task; concurrent or repeated callers await that same task, so
the model is never loaded twice. Loads are retried with backoff and report
progress through ``self.progress``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Sequence

from memory_ai.cache import EmbeddingCache
from memory_ai.embedding.base import EmbeddingModel
from memory_ai.errors import (
    AIError,
    DependencyError,
    DimensionMismatchError,
    EmbeddingError,
    InitializationError,
    InvalidInputError,
    ModelLoadError,
)
from memory_ai.performance import PerformanceMonitor
from memory_ai.progress import ProgressCallback, ProgressTracker
from memory_ai.retry import with_retry

logger = logging.getLogger(__name__)

SLOW_EMBEDDING_MS = 100.0

ModelLoader = Callable[[], EmbeddingModel]


class EmbeddingEngine:
    def __init__(
        self,
        model_loader: ModelLoader,
        *,
        model_name: str,
        dimension: int,
        cache: Optional[EmbeddingCache] = None,
        progress: Optional[ProgressTracker] = None,
        performance: Optional[PerformanceMonitor] = None,
        load_attempts: int = 3,
        load_retry_delay: float = 1.0,
    ):
        self._loader = model_loader
        self._model_name = model_name
        self._dimension = dimension
        self.cache = cache
        self.progress = progress or ProgressTracker()
        self.performance = performance or PerformanceMonitor()
        self._load_attempts = load_attempts
        self._load_retry_delay = load_retry_delay

        self._model: Optional[EmbeddingModel] = None
        self._load_task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    async def initialize(self, on_progress: Optional[ProgressCallback] = None) -> None:
        if self._model is not None:
            return

        unsubscribe = self.progress.subscribe(on_progress) if on_progress else None
        try:
            if self._load_task is None:
                self._load_task = asyncio.ensure_future(self._load())
            task = self._load_task
            try:
                model = await asyncio.shield(task)
            except Exception:
                if self._load_task is task:
                    self._load_task = None
                raise
            if self._load_task is task:
                self._model = model
        finally:
            if unsubscribe is not None:
                unsubscribe()

    async def _load(self) -> EmbeddingModel:
        self.progress.update(0.0, "Starting model load...")

        def on_retry(attempt: int, error: BaseException) -> None:
            self.progress.update(
                attempt / self._load_attempts * 10.0,
                f"Retry attempt {attempt}/{self._load_attempts}",
            )

        try:
            model = await with_retry(
                lambda: asyncio.to_thread(self._loader),
                max_attempts=self._load_attempts,
                delay=self._load_retry_delay,
                should_retry=lambda e: not isinstance(e, (DependencyError, InitializationError)),
                on_retry=on_retry,
            )
        except AIError as e:
            self.progress.error(e.message)
            raise
        except Exception as e:
            self.progress.error(str(e) or "Model load failed")
            raise ModelLoadError(self._model_name, cause=e) from e

        if model.dimension != self._dimension:
            self.progress.error("Model dimension does not match configuration")
            raise InitializationError(
                f"embedding model {model.model_name!r}: produces {model.dimension} "
                f"dimensions, configured {self._dimension}"
            )

        self.progress.complete("Model loaded successfully")
        logger.info("Embedding model %s ready (%d dims)", model.model_name, model.dimension)
        return model

    def dispose(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None
        self._model = None
        self.progress.reset()

    def is_ready(self) -> bool:
        return self._model is not None

    def is_loading(self) -> bool:
        return self._model is None and self._load_task is not None and not self._load_task.done()

    def get_info(self) -> dict:
        return {
            "model_name": self._model_name,
            "dimension": self._dimension,
            "is_ready": self.is_ready(),
            "is_loading": self.is_loading(),
        }

    @property
    def dimension(self) -> int:
        return self._dimension

    # -------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------

    @staticmethod
    def _check_text(text) -> None:
        if not isinstance(text, str) or not text:
            raise InvalidInputError("Text must be a non-empty string")

    def _check_vector(self, vector: Sequence[float]) -> List[float]:
        if len(vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(vector))
        return [float(x) for x in vector]

    async def _ready_model(self) -> EmbeddingModel:
        if self._model is None:
            await self.initialize()
        model = self._model
        if model is None:
            raise ModelLoadError(self._model_name)
        return model

    async def _cached(self, text: str) -> Optional[List[float]]:
        if self.cache is None:
            return None
        vector = await self.cache.get(text)
        if vector is not None and len(vector) != self._dimension:
            logger.warning("Ignoring cached embedding with %d dims", len(vector))
            return None
        return vector

    async def generate(self, text: str, *, use_cache: bool = True) -> List[float]:
        self._check_text(text)

        if use_cache:
            cached = await self._cached(text)
            if cached is not None:
                return cached

        model = await self._ready_model()
        start = time.perf_counter()
        try:
            raw = await asyncio.to_thread(model.embed, text)
        except AIError:
            raise
        except Exception as e:
            raise EmbeddingError(str(e), cause=e) from e
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self.performance.record("embedding-generation", elapsed_ms)
        if elapsed_ms > SLOW_EMBEDDING_MS:
            logger.warning("Embedding generation took %.1fms (target: <%.0fms)", elapsed_ms, SLOW_EMBEDDING_MS)

        vector = self._check_vector(raw)
        if use_cache and self.cache is not None:
            await self.cache.set(text, vector)
        return vector

    async def generate_batch(self, texts: Sequence[str], *, use_cache: bool = True) -> List[List[float]]:
        if not texts:
            raise InvalidInputError("Texts must be a non-empty list")
        for t in texts:
            self._check_text(t)

        results: List[Optional[List[float]]] = [None] * len(texts)
        missing: List[int] = []
        for i, t in enumerate(texts):
            cached = await self._cached(t) if use_cache else None
            if cached is not None:
                results[i] = cached
            else:
                missing.append(i)

        if missing:
            model = await self._ready_model()
            start = time.perf_counter()
            try:
                raw = await asyncio.to_thread(model.embed_batch, [texts[i] for i in missing])
            except AIError:
                raise
            except Exception as e:
                raise EmbeddingError(str(e), cause=e) from e
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            self.performance.record("embedding-batch", elapsed_ms)
            logger.debug(
                "Generated %d embeddings in %.1fms (avg: %.1fms per embedding)",
                len(missing),
                elapsed_ms,
                elapsed_ms / len(missing),
            )

            if len(raw) != len(missing):
                raise EmbeddingError(f"model returned {len(raw)} vectors for {len(missing)} texts")

            for i, vec in zip(missing, raw):
                vector = self._check_vector(vec)
                results[i] = vector
                if use_cache and self.cache is not None:
                    await self.cache.set(texts[i], vector)

        return [r for r in results if r is not None]
