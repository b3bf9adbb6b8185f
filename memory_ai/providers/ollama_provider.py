import logging
from typing import Dict, List, Optional

import ollama

from memory_ai.config import OLLAMA_EMBEDDINGS_MODEL, OLLAMA_HOST, OLLAMA_MODEL, SYSTEM_PROMPT
from memory_ai.errors import ChatError, EmbeddingError, NetworkError
from memory_ai.providers.base import (
    BaseProvider,
    ProviderCapabilities,
    ProviderConfig,
    ProviderType,
)

logger = logging.getLogger(__name__)


def _base_name(model: str) -> str:
    return model.split(":", 1)[0]


class OllamaProvider(BaseProvider):
    """Local models served by an Ollama daemon."""

    name = "Ollama (local)"
    type = ProviderType.LOCAL
    requires_api_key = False
    capabilities = ProviderCapabilities(chat=True, embeddings=True)

    def __init__(
        self,
        host: str = OLLAMA_HOST,
        model: str = OLLAMA_MODEL,
        embeddings_model: str = OLLAMA_EMBEDDINGS_MODEL,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.host = host
        self.model = model
        self.embeddings_model = embeddings_model
        self._client: Optional[ollama.AsyncClient] = None

    async def _list_models(self) -> List[str]:
        try:
            resp = await self._client.list()
        except ConnectionError as e:
            raise NetworkError(f"cannot reach Ollama at {self.host}", cause=e) from e
        return [m.model for m in resp.models if m.model]

    async def _setup(self, config: ProviderConfig) -> None:
        self._client = ollama.AsyncClient(host=self.host)
        if config.model_name:
            self.model = config.model_name

        available = {_base_name(m) for m in await self._list_models()}
        if _base_name(self.model) not in available:
            raise RuntimeError(f"Ollama model {self.model!r} is not pulled (try: ollama pull {self.model})")
        logger.debug("Ollama at %s serves %d models", self.host, len(available), extra={"provider": self.name})

    def _messages(self, message: str, context: List[str]) -> List[Dict[str, str]]:
        messages = []
        system = self.system_prompt() or SYSTEM_PROMPT
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": self.build_prompt(message, context)})
        return messages

    async def _chat(self, message: str, context: List[str]) -> str:
        options = {"temperature": self.config.temperature}
        if self.config.max_tokens:
            options["num_predict"] = self.config.max_tokens
        try:
            resp = await self._client.chat(
                model=self.model,
                messages=self._messages(message, context),
                options=options,
            )
        except ollama.ResponseError as e:
            raise ChatError(f"Ollama model error: {e.error}", cause=e) from e
        except ConnectionError as e:
            raise NetworkError(f"cannot reach Ollama at {self.host}", cause=e) from e
        return resp.message.content or ""

    async def _embed(self, text: str) -> List[float]:
        try:
            resp = await self._client.embed(model=self.embeddings_model, input=text)
        except ollama.ResponseError as e:
            raise EmbeddingError(f"Ollama model error: {e.error}", cause=e) from e
        except ConnectionError as e:
            raise NetworkError(f"cannot reach Ollama at {self.host}", cause=e) from e
        if not resp.embeddings:
            raise EmbeddingError("Ollama returned no embeddings")
        return list(resp.embeddings[0])

    async def _probe(self) -> Optional[str]:
        models = await self._list_models()
        return f"Ollama ready ({len(models)} models, using {self.model})"

    async def _teardown(self) -> None:
        self._client = None
