import heapq
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from memory_ai.errors import DimensionMismatchError, InvalidInputError
from memory_ai.vector_math import as_vector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryRecord:
    id: str
    content: str
    embedding: Optional[Sequence[float]] = None


@dataclass(frozen=True)
class SimilarityMatch:
    id: str
    similarity: float
    content: str

    def to_dict(self) -> dict:
        return {"id": self.id, "similarity": self.similarity, "content": self.content}


Candidate = Union[MemoryRecord, Mapping[str, Any]]


def cosine_similarity(a, b) -> float:
    a = as_vector(a)
    b = as_vector(b)
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(a.shape[0], b.shape[0])

    na = np.linalg.norm(a)
    nb = np.linalg.norm(b)
    if na == 0.0 or nb == 0.0:
        return 0.0

    return float(np.dot(a, b) / (na * nb))


def batch_cosine_similarity(query, vectors: Iterable) -> List[float]:
    """Score every vector against ``query``; invalid vectors score 0.0."""
    scores: List[float] = []
    for v in vectors:
        try:
            scores.append(cosine_similarity(query, v))
        except (DimensionMismatchError, InvalidInputError, TypeError, ValueError) as e:
            logger.warning("Invalid vector in batch similarity: %s", e)
            scores.append(0.0)
    return scores


def _unpack(candidate: Candidate) -> Tuple[str, str, Any]:
    if isinstance(candidate, Mapping):
        return str(candidate["id"]), str(candidate.get("content", "")), candidate.get("embedding")
    return str(candidate.id), candidate.content, candidate.embedding


def _score_all(query, candidates: Iterable[Candidate], exclude: frozenset) -> Iterable[SimilarityMatch]:
    """
    Yield a match per usable candidate.

    Candidates without an embedding, with a wrong-dimension embedding or in
    ``exclude`` are skipped; they never fail the whole search.
    """
    q = as_vector(query)
    for candidate in candidates:
        cid, content, emb = _unpack(candidate)
        if cid in exclude or emb is None:
            continue
        try:
            sim = cosine_similarity(q, emb)
        except (DimensionMismatchError, InvalidInputError, TypeError, ValueError) as e:
            logger.warning("Skipping memory %s due to embedding error: %s", cid, e)
            continue
        yield SimilarityMatch(id=cid, similarity=sim, content=content)


def find_similar(
    query,
    candidates: Iterable[Candidate],
    *,
    threshold: float = 0.7,
    limit: int = 10,
    exclude_ids: Iterable[str] = (),
) -> List[SimilarityMatch]:
    matches = [
        m for m in _score_all(query, candidates, frozenset(exclude_ids))
        if m.similarity >= threshold
    ]
    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches[:limit]


def top_n_similar(
    query,
    candidates: Iterable[Candidate],
    n: int,
    *,
    exclude_ids: Iterable[str] = (),
) -> List[SimilarityMatch]:
    """Best ``n`` matches regardless of threshold, using a bounded heap."""
    if n <= 0:
        return []
    return heapq.nlargest(
        n,
        _score_all(query, candidates, frozenset(exclude_ids)),
        key=lambda m: m.similarity,
    )
