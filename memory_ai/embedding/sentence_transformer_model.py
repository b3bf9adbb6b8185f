from typing import List, Sequence

from memory_ai.embedding.base import EmbeddingModel
from memory_ai.errors import DependencyError


class SentenceTransformerModel(EmbeddingModel):
    """
    On-device embedding model (MiniLM by default, 384 dimensions).

    Construction downloads/loads the weights, so build it through the
    engine, which does that off the event loop with retries.
    """

    def __init__(self, model_name: str):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise DependencyError("sentence-transformers (pip install memory-ai[local])", cause=e) from e

        self._name = model_name
        self._model = SentenceTransformer(model_name)
        self._dimension = int(self._model.get_sentence_embedding_dimension())

    @property
    def model_name(self) -> str:
        return self._name

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> List[float]:
        vec = self._model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return vec.tolist()

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        vecs = self._model.encode(list(texts), convert_to_numpy=True, normalize_embeddings=True)
        return [v.tolist() for v in vecs]
