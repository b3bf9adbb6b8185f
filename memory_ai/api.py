import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from memory_ai.cache import EmbeddingCache
from memory_ai.config import (
    CACHE_PRELOAD_LIMIT,
    CONTRADICTION_THRESHOLD,
    DUPLICATE_THRESHOLD,
    PREFERRED_PROVIDER,
)
from memory_ai.contradiction import classify_similarity, detect_contradictions, detect_duplicates
from memory_ai.embedding.engine import EmbeddingEngine
from memory_ai.embedding.provider import get_embedding_cache, get_embedding_engine
from memory_ai.errors import (
    AIError,
    DimensionMismatchError,
    InvalidInputError,
    NoProviderAvailableError,
    error_handler,
)
from memory_ai.extraction import extract_memory, should_extract_memory
from memory_ai.health import health_monitor
from memory_ai.providers.base import BaseProvider
from memory_ai.providers.registry import ProviderRegistry, default_registry
from memory_ai.similarity import MemoryRecord, find_similar, top_n_similar

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Shared components
# ---------------------------------------------------------------------

_registry = default_registry()
_provider: Optional[BaseProvider] = None
_provider_lock = asyncio.Lock()


def get_engine() -> EmbeddingEngine:
    return get_embedding_engine()


def get_cache() -> EmbeddingCache:
    return get_embedding_cache()


def get_registry() -> ProviderRegistry:
    return _registry


async def get_provider() -> BaseProvider:
    global _provider
    async with _provider_lock:
        if _provider is None or not _provider.is_initialized():
            _provider = await _registry.select_provider(PREFERRED_PROVIDER)
            await health_monitor.start_monitoring(_provider)
        return _provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        loaded = await get_embedding_cache().preload(CACHE_PRELOAD_LIMIT)
        logger.info("Preloaded %d cached embeddings", loaded)
    except AIError as e:
        logger.warning("Cache preload skipped: %s", e)
    yield
    health_monitor.stop_monitoring()
    await _registry.dispose_all()
    await get_embedding_cache().close()


app = FastAPI(title="Memory AI", lifespan=lifespan)


@app.exception_handler(AIError)
async def ai_error_handler(request: Request, exc: AIError):
    if isinstance(exc, (InvalidInputError, DimensionMismatchError)):
        status = 422
    elif isinstance(exc, NoProviderAvailableError):
        status = 503
    else:
        status = 500
        logger.error("AI error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status,
        content={
            "error": {
                "code": exc.code,
                "message": error_handler.user_message(exc),
                "detail": exc.message,
                "recoverable": exc.recoverable,
            }
        },
    )


# ---------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------

class MemoryIn(BaseModel):
    id: str
    content: str = ""
    embedding: Optional[List[float]] = None

    def to_record(self) -> MemoryRecord:
        return MemoryRecord(id=self.id, content=self.content, embedding=self.embedding)


class EmbeddingsRequest(BaseModel):
    texts: List[str] = Field(min_length=1, max_length=200)
    use_cache: bool = True


class QueryRequest(BaseModel):
    text: Optional[str] = None
    embedding: Optional[List[float]] = None
    candidates: List[MemoryIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _need_query(self):
        if self.text is None and self.embedding is None:
            raise ValueError("either text or embedding is required")
        return self


class SimilarRequest(QueryRequest):
    threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    limit: int = Field(default=10, ge=1, le=200)
    top_n: Optional[int] = Field(default=None, ge=0, le=200)
    exclude_ids: List[str] = Field(default_factory=list)


class DuplicatesRequest(QueryRequest):
    threshold: float = Field(default=DUPLICATE_THRESHOLD, ge=-1.0, le=1.0)


class ContradictionsRequest(BaseModel):
    id: str
    content: str = Field(min_length=1)
    embedding: Optional[List[float]] = None
    existing: List[MemoryIn] = Field(default_factory=list)
    threshold: float = Field(default=CONTRADICTION_THRESHOLD, ge=-1.0, le=1.0)


class ChatMessage(BaseModel):
    role: str = Field(min_length=1)
    content: str


class ExtractRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1, max_length=50)
    force: bool = False


async def _query_vector(req: QueryRequest, engine: EmbeddingEngine) -> List[float]:
    if req.embedding is not None:
        return req.embedding
    return await engine.generate(req.text)


# ---------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------

@app.get("/health")
def health(engine: EmbeddingEngine = Depends(get_engine)):
    return {
        "ok": True,
        "embeddings": engine.get_info(),
        "provider": health_monitor.get_status().to_dict(),
    }


@app.post("/embeddings")
async def embeddings(req: EmbeddingsRequest, engine: EmbeddingEngine = Depends(get_engine)):
    t0 = time.time()
    vectors = await engine.generate_batch(req.texts, use_cache=req.use_cache)
    return {
        "model": engine.get_info()["model_name"],
        "dimension": engine.dimension,
        "embeddings": vectors,
        "timing_ms": int((time.time() - t0) * 1000),
    }


@app.post("/similar")
async def similar(req: SimilarRequest, engine: EmbeddingEngine = Depends(get_engine)):
    query = await _query_vector(req, engine)
    candidates = [c.to_record() for c in req.candidates]
    if req.top_n is not None:
        matches = top_n_similar(query, candidates, req.top_n, exclude_ids=req.exclude_ids)
    else:
        matches = find_similar(
            query,
            candidates,
            threshold=req.threshold,
            limit=req.limit,
            exclude_ids=req.exclude_ids,
        )
    return {"matches": [m.to_dict() for m in matches]}


@app.post("/duplicates")
async def duplicates(req: DuplicatesRequest, engine: EmbeddingEngine = Depends(get_engine)):
    query = await _query_vector(req, engine)
    matches = detect_duplicates(query, [c.to_record() for c in req.candidates], req.threshold)
    out: List[Dict[str, Any]] = []
    for m in matches:
        d = m.to_dict()
        d["classification"] = classify_similarity(m.similarity)
        out.append(d)
    return {"duplicates": out}


@app.post("/contradictions")
async def contradictions(
    req: ContradictionsRequest,
    engine: EmbeddingEngine = Depends(get_engine),
    provider: BaseProvider = Depends(get_provider),
):
    embedding = req.embedding
    if embedding is None:
        embedding = await engine.generate(req.content)
    verdicts = await detect_contradictions(
        req.id,
        req.content,
        embedding,
        [m.to_record() for m in req.existing],
        provider,
        threshold=req.threshold,
    )
    return {"provider": provider.name, "contradictions": [v.to_dict() for v in verdicts]}


@app.post("/extract")
async def extract(req: ExtractRequest, provider: BaseProvider = Depends(get_provider)):
    messages = [m.model_dump() for m in req.messages]
    if not req.force and not should_extract_memory(messages):
        return {"memory": None, "skipped": True}
    extracted = await extract_memory(messages, provider)
    return {"memory": extracted.to_dict() if extracted else None, "skipped": False}


@app.get("/providers")
def providers(registry: ProviderRegistry = Depends(get_registry)):
    return {"providers": registry.get_available_providers()}


@app.get("/providers/availability")
async def providers_availability(registry: ProviderRegistry = Depends(get_registry)):
    return {"availability": await registry.check_provider_availability()}


@app.get("/cache/stats")
async def cache_stats(cache: EmbeddingCache = Depends(get_cache)):
    stats = await cache.get_stats()
    return {"stats": stats.to_dict(), "memory_entries": cache.memory_size()}
