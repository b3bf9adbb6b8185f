from typing import List, Optional

from openai import APIConnectionError, AsyncOpenAI

from memory_ai.config import (
    OPENAI_API_KEY,
    OPENAI_CHAT_MODEL,
    OPENAI_EMBEDDINGS_MODEL,
    SYSTEM_PROMPT,
)
from memory_ai.errors import NetworkError
from memory_ai.providers.base import (
    BaseProvider,
    ProviderCapabilities,
    ProviderConfig,
    ProviderType,
)


class OpenAIProvider(BaseProvider):
    name = "OpenAI (cloud)"
    type = ProviderType.CLOUD
    requires_api_key = True
    capabilities = ProviderCapabilities(chat=True, embeddings=True)

    def __init__(
        self,
        chat_model: str = OPENAI_CHAT_MODEL,
        embeddings_model: str = OPENAI_EMBEDDINGS_MODEL,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.chat_model = chat_model
        self.embeddings_model = embeddings_model
        self.client: Optional[AsyncOpenAI] = None

    async def _setup(self, config: ProviderConfig) -> None:
        api_key = config.api_key or OPENAI_API_KEY
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        if config.model_name:
            self.chat_model = config.model_name

        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=20.0,
        )

    async def _chat(self, message: str, context: List[str]) -> str:
        messages = [
            {"role": "system", "content": self.system_prompt() or SYSTEM_PROMPT},
            {"role": "user", "content": self.build_prompt(message, context)},
        ]
        kwargs = {"temperature": self.config.temperature}
        if self.config.max_tokens:
            kwargs["max_tokens"] = self.config.max_tokens
        try:
            resp = await self.client.chat.completions.create(
                model=self.chat_model,
                messages=messages,
                **kwargs,
            )
        except APIConnectionError as e:
            raise NetworkError(str(e), cause=e) from e
        return resp.choices[0].message.content or ""

    async def _embed(self, text: str) -> List[float]:
        try:
            resp = await self.client.embeddings.create(
                model=self.embeddings_model,
                input=text,
            )
        except APIConnectionError as e:
            raise NetworkError(str(e), cause=e) from e
        return list(resp.data[0].embedding)

    async def _teardown(self) -> None:
        if self.client is not None:
            await self.client.close()
        self.client = None
