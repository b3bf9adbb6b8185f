import hashlib
import math
import random
from typing import List

from memory_ai.embedding.base import EmbeddingModel


class StubEmbeddingModel(EmbeddingModel):
    """
    Deterministic pseudo-embedding for tests/dev.

    Same text -> same vector, different text -> different vector; every
    vector is unit length with ``dims`` components.
    """

    def __init__(self, dims: int = 384, model_name: str = "stub-384"):
        if dims < 1:
            raise ValueError("dims must be >= 1")
        self._dims = dims
        self._model = model_name

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dims

    def embed(self, text: str) -> List[float]:
        return deterministic_vector(text, self._dims)


def deterministic_vector(text: str, dims: int) -> List[float]:
    h = hashlib.sha256(text.encode("utf-8")).digest()
    seed = int.from_bytes(h[:8], "big", signed=False)
    rng = random.Random(seed)
    raw = [rng.gauss(0.0, 1.0) for _ in range(dims)]
    norm = math.sqrt(sum(x * x for x in raw)) or 1.0
    return [x / norm for x in raw]
