from abc import ABC, abstractmethod
from typing import List, Sequence


class EmbeddingModel(ABC):
    """
    Minimal embedding model interface.
    Must return vectors of floats whose length equals ``dimension``.
    Calls are blocking; the engine runs them off the event loop.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    @property
    @abstractmethod
    def dimension(self) -> int:
        ...

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]
