import asyncio

import pytest

from memory_ai.embedding.engine import EmbeddingEngine
from memory_ai.embedding.stub_model import StubEmbeddingModel
from memory_ai.errors import (
    DependencyError,
    DimensionMismatchError,
    InitializationError,
    InvalidInputError,
    ModelLoadError,
)

DIMS = 384


class CountingModel(StubEmbeddingModel):
    def __init__(self, dims=DIMS):
        super().__init__(dims=dims)
        self.embed_calls = 0
        self.batch_calls = []

    def embed(self, text):
        self.embed_calls += 1
        return super().embed(text)

    def embed_batch(self, texts):
        self.batch_calls.append(list(texts))
        return [StubEmbeddingModel.embed(self, t) for t in texts]


class CountingLoader:
    def __init__(self, failures=0, error=RuntimeError("download interrupted"), dims=DIMS):
        self.calls = 0
        self.failures = failures
        self.error = error
        self.dims = dims
        self.model = None

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        self.model = CountingModel(self.dims)
        return self.model


def _engine(loader, cache=None):
    return EmbeddingEngine(loader, model_name="stub-384", dimension=DIMS, cache=cache, load_retry_delay=0)


@pytest.mark.asyncio
async def test_initialize_is_idempotent_under_concurrency(cache):
    loader = CountingLoader()
    engine = _engine(loader, cache)

    await asyncio.gather(*(engine.initialize() for _ in range(5)))
    await engine.initialize()

    assert loader.calls == 1
    assert engine.is_ready()
    assert not engine.is_loading()


@pytest.mark.asyncio
async def test_generate_deterministic_and_full_dimension(engine):
    a1 = await engine.generate("I love coffee")
    a2 = await engine.generate("I love coffee")
    b = await engine.generate("I like hiking")

    assert a1 == a2
    assert len(a1) == DIMS
    assert len(b) == DIMS
    assert a1 != b


@pytest.mark.asyncio
async def test_cache_hit_skips_model(cache):
    loader = CountingLoader()
    engine = _engine(loader, cache)

    await engine.generate("cached text")
    await engine.generate("cached text")
    assert loader.model.embed_calls == 1
    assert await cache.has("cached text")


@pytest.mark.asyncio
async def test_use_cache_false_bypasses_cache(cache):
    loader = CountingLoader()
    engine = _engine(loader, cache)

    await engine.generate("fresh", use_cache=False)
    await engine.generate("fresh", use_cache=False)
    assert loader.model.embed_calls == 2
    assert await cache.has("fresh") is False


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["", None, 42])
async def test_generate_rejects_invalid_text(engine, bad):
    with pytest.raises(InvalidInputError):
        await engine.generate(bad)


@pytest.mark.asyncio
async def test_long_and_unicode_text(engine):
    long_vec = await engine.generate("memory " * 5000)
    uni_vec = await engine.generate("J'adore le café ☕ 我喜欢咖啡")
    assert len(long_vec) == DIMS
    assert len(uni_vec) == DIMS


@pytest.mark.asyncio
async def test_cached_vector_with_wrong_dimension_is_ignored(cache):
    engine = _engine(CountingLoader(), cache)
    await cache.set("legacy", [1.0, 2.0])

    vec = await engine.generate("legacy")
    assert len(vec) == DIMS


@pytest.mark.asyncio
async def test_generate_batch_preserves_order_and_uses_cache(cache):
    loader = CountingLoader()
    engine = _engine(loader, cache)
    texts = ["one", "two", "three"]

    singles = [await engine.generate("two")]
    batch = await engine.generate_batch(texts)

    assert len(batch) == 3
    assert batch[1] == singles[0]
    assert batch[0] == StubEmbeddingModel(DIMS).embed("one")
    # only the cache misses reach the model
    assert loader.model.batch_calls == [["one", "three"]]


@pytest.mark.asyncio
async def test_generate_batch_rejects_empty(engine):
    with pytest.raises(InvalidInputError):
        await engine.generate_batch([])


@pytest.mark.asyncio
async def test_dispose_then_reinitialize(cache):
    loader = CountingLoader()
    engine = _engine(loader, cache)
    await engine.initialize()

    engine.dispose()
    assert not engine.is_ready()
    assert engine.progress.get_progress() == (0.0, None)

    await engine.initialize()
    assert engine.is_ready()
    assert loader.calls == 2


@pytest.mark.asyncio
async def test_initialize_reports_progress(engine):
    seen = []
    await engine.initialize(on_progress=lambda p, m: seen.append((p, m)))

    assert seen[0] == (0.0, None)
    assert seen[-1] == (100.0, "Model loaded successfully")
    assert not engine.progress.has_subscribers()


@pytest.mark.asyncio
async def test_transient_load_failures_are_retried():
    loader = CountingLoader(failures=2)
    engine = _engine(loader)

    await engine.initialize()
    assert loader.calls == 3
    assert engine.is_ready()


@pytest.mark.asyncio
async def test_load_failure_raises_model_load_error():
    loader = CountingLoader(failures=10)
    engine = _engine(loader)

    with pytest.raises(ModelLoadError) as exc_info:
        await engine.initialize()

    assert loader.calls == 3
    assert exc_info.value.recoverable
    assert engine.progress.get_progress() == (-1.0, "Error: download interrupted")
    assert not engine.is_loading()

    # a later call starts a fresh load
    loader.failures = 0
    await engine.initialize()
    assert engine.is_ready()


@pytest.mark.asyncio
async def test_missing_dependency_is_not_retried():
    loader = CountingLoader(failures=10, error=DependencyError("sentence-transformers"))
    engine = _engine(loader)

    with pytest.raises(DependencyError):
        await engine.initialize()
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_model_dimension_must_match_configuration():
    engine = _engine(CountingLoader(dims=128))
    with pytest.raises(InitializationError):
        await engine.initialize()


@pytest.mark.asyncio
async def test_wrong_size_output_is_rejected():
    class ShortModel(StubEmbeddingModel):
        def embed(self, text):
            return [0.0] * 3

    engine = EmbeddingEngine(lambda: ShortModel(DIMS), model_name="short", dimension=DIMS)
    with pytest.raises(DimensionMismatchError):
        await engine.generate("x")


@pytest.mark.asyncio
async def test_get_info(engine):
    info = engine.get_info()
    assert info == {"model_name": "stub-384", "dimension": DIMS, "is_ready": False, "is_loading": False}

    await engine.initialize()
    assert engine.get_info()["is_ready"] is True
    assert engine.performance.get_stats("embedding-generation") is None

    await engine.generate("timed")
    assert engine.performance.get_stats("embedding-generation").count == 1
