"""
Deterministic in-process provider for tests and offline development.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from memory_ai.embedding.stub_model import deterministic_vector
from memory_ai.errors import DimensionMismatchError, ProviderUnavailableError
from memory_ai.providers.base import (
    BaseProvider,
    ProviderCapabilities,
    ProviderConfig,
    ProviderType,
)


@dataclass
class MockStats:
    chat_calls: int = 0
    embed_calls: int = 0


class MockProvider(BaseProvider):
    name = "Mock AI Provider"
    type = ProviderType.LOCAL
    requires_api_key = False
    capabilities = ProviderCapabilities(chat=True, embeddings=True)

    def __init__(self, dimension: int = 384, **kwargs):
        super().__init__(**kwargs)
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self.dimension = dimension
        self._responses: "OrderedDict[str, str]" = OrderedDict()
        self._embeddings: Dict[str, List[float]] = {}
        self._init_delay = 0.0
        self._chat_delay = 0.0
        self._embed_delay = 0.0
        self._fail_initialize = False
        self._available = True
        self.stats = MockStats()
        self.chat_history: List[str] = []

    # --- configuration -------------------------------------------------

    def set_response(self, pattern: str, response: str) -> None:
        self._responses[pattern] = response

    def set_embedding(self, text: str, vector: Sequence[float]) -> None:
        if len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector))
        self._embeddings[text] = [float(x) for x in vector]

    def set_delays(
        self,
        init: Optional[float] = None,
        chat: Optional[float] = None,
        embed: Optional[float] = None,
    ) -> None:
        if init is not None:
            self._init_delay = init
        if chat is not None:
            self._chat_delay = chat
        if embed is not None:
            self._embed_delay = embed

    def fail_initialize(self, fail: bool = True) -> None:
        self._fail_initialize = fail

    def set_available(self, available: bool) -> None:
        self._available = available
        self._last_health = None

    def clear_responses(self) -> None:
        self._responses.clear()

    def clear_embeddings(self) -> None:
        self._embeddings.clear()

    def reset_stats(self) -> None:
        self.stats = MockStats()
        self.chat_history = []

    # --- hooks ---------------------------------------------------------

    async def _setup(self, config: ProviderConfig) -> None:
        if self._init_delay:
            await asyncio.sleep(self._init_delay)
        if self._fail_initialize:
            raise RuntimeError("Mock initialization failure")

    async def _chat(self, message: str, context: List[str]) -> str:
        self.stats.chat_calls += 1
        self.chat_history.append(message)
        if self._chat_delay:
            await asyncio.sleep(self._chat_delay)

        if message in self._responses:
            return self._responses[message]
        for pattern, response in self._responses.items():
            if pattern in message:
                return response

        reply = f"Mock response to: {message}"
        if context:
            reply += f" (with {len(context)} context items)"
        return reply

    async def _embed(self, text: str) -> List[float]:
        self.stats.embed_calls += 1
        if self._embed_delay:
            await asyncio.sleep(self._embed_delay)
        if text in self._embeddings:
            return list(self._embeddings[text])
        return deterministic_vector(text, self.dimension)

    async def _probe(self) -> Optional[str]:
        if not self._available:
            raise ProviderUnavailableError(self.name)
        return "Mock provider ready"

    async def _teardown(self) -> None:
        self._responses.clear()
        self._embeddings.clear()
