"""
Common contract for AI providers (chat + embeddings).

Subclasses implement ``_setup``, ``_chat`` and ``_embed``; the base class
owns the lifecycle state, input checks, error wrapping and the cached
health check.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict

from memory_ai.config import PROVIDER_HEALTH_TTL
from memory_ai.errors import (
    AIError,
    CapabilityNotSupportedError,
    ChatError,
    EmbeddingError,
    InvalidInputError,
    ProviderInitializationError,
    ProviderNotInitializedError,
)

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    LOCAL = "local"
    CLOUD = "cloud"


class ProviderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DEGRADED = "degraded"


class HealthState(str, Enum):
    UNAVAILABLE = "unavailable"
    INITIALIZING = "initializing"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ProviderCapabilities:
    chat: bool = False
    embeddings: bool = False
    streaming: bool = False
    multimodal: bool = False


@dataclass(frozen=True)
class ProviderHealth:
    available: bool
    status: HealthState
    message: str
    last_checked: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        d = asdict(self)
        d["status"] = self.status.value
        d["last_checked"] = self.last_checked.isoformat()
        return d


class ProviderConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    api_key: Optional[str] = None
    model_name: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None


ConfigLike = Union[ProviderConfig, dict, None]


class BaseProvider(ABC):
    name: str = "provider"
    type: ProviderType = ProviderType.LOCAL
    requires_api_key: bool = False
    capabilities: ProviderCapabilities = ProviderCapabilities()

    def __init__(
        self,
        *,
        health_ttl: float = PROVIDER_HEALTH_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._health_ttl = health_ttl
        self._clock = clock
        self._state = ProviderState.UNINITIALIZED
        self.config: Optional[ProviderConfig] = None
        self._last_health: Optional[ProviderHealth] = None
        self._last_health_at: Optional[float] = None
        self._init_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ProviderState:
        return self._state

    def is_initialized(self) -> bool:
        return self._state in (ProviderState.READY, ProviderState.DEGRADED)

    # --- lifecycle -----------------------------------------------------

    async def initialize(self, config: ConfigLike = None) -> None:
        """
        Set the provider up once; concurrent callers share one setup run.
        """
        if self.is_initialized():
            return

        if isinstance(config, ProviderConfig):
            cfg = config
        else:
            cfg = ProviderConfig.model_validate(config or {})

        if self._init_task is None or self._init_task.done():
            self._state = ProviderState.INITIALIZING
            self._last_health = None
            self._init_task = asyncio.ensure_future(self._initialize(cfg))
        task = self._init_task
        try:
            await asyncio.shield(task)
        finally:
            if self._init_task is task and task.done():
                self._init_task = None

    async def _initialize(self, cfg: ProviderConfig) -> None:
        try:
            await self._setup(cfg)
        except Exception as e:
            self._state = ProviderState.UNINITIALIZED
            self.config = None
            logger.warning("Provider %s failed to initialize: %s", self.name, e, extra={"provider": self.name})
            raise ProviderInitializationError(self.name, cause=e) from e

        self.config = cfg
        self._state = ProviderState.READY
        logger.info("Provider %s initialized", self.name, extra={"provider": self.name})

    async def dispose(self) -> None:
        try:
            await self._teardown()
        finally:
            self._state = ProviderState.UNINITIALIZED
            self.config = None
            self._last_health = None
            self._last_health_at = None

    def ensure_initialized(self) -> None:
        if not self.is_initialized():
            raise ProviderNotInitializedError(self.name)

    # --- operations ----------------------------------------------------

    async def chat(self, message: str, context: Optional[Sequence[str]] = None) -> str:
        self.ensure_initialized()
        if not self.capabilities.chat:
            raise CapabilityNotSupportedError(self.name, "chat")
        if not isinstance(message, str) or not message.strip():
            raise InvalidInputError("Message must be a non-empty string")

        try:
            return await self._chat(message, list(context or []))
        except AIError:
            raise
        except Exception as e:
            raise ChatError(str(e), cause=e) from e

    async def embed(self, text: str) -> List[float]:
        self.ensure_initialized()
        if not self.capabilities.embeddings:
            raise CapabilityNotSupportedError(self.name, "embeddings")
        if not isinstance(text, str) or not text:
            raise InvalidInputError("Text must be a non-empty string")

        try:
            return [float(x) for x in await self._embed(text)]
        except AIError:
            raise
        except Exception as e:
            raise EmbeddingError(str(e), cause=e) from e

    async def health_check(self) -> ProviderHealth:
        now = self._clock()
        if (
            self._last_health is not None
            and self._last_health_at is not None
            and now - self._last_health_at < self._health_ttl
        ):
            return self._last_health

        if self._state == ProviderState.INITIALIZING:
            health = ProviderHealth(False, HealthState.INITIALIZING, f"{self.name} is initializing")
        elif self._state == ProviderState.UNINITIALIZED:
            health = ProviderHealth(False, HealthState.UNAVAILABLE, f"{self.name} is not initialized")
        else:
            try:
                message = await self._probe()
            except Exception as e:
                self._state = ProviderState.DEGRADED
                health = ProviderHealth(False, HealthState.ERROR, str(e) or type(e).__name__)
            else:
                self._state = ProviderState.READY
                health = ProviderHealth(True, HealthState.READY, message or f"{self.name} is ready")

        self._last_health = health
        self._last_health_at = now
        return health

    def info(self) -> dict:
        return {
            "name": self.name,
            "type": self.type.value,
            "requires_api_key": self.requires_api_key,
            "capabilities": asdict(self.capabilities),
            "state": self._state.value,
        }

    # --- helpers -------------------------------------------------------

    def system_prompt(self) -> Optional[str]:
        return self.config.system_prompt if self.config is not None else None

    @staticmethod
    def build_prompt(message: str, context: Sequence[str]) -> str:
        if not context:
            return message
        lines = "\n".join(f"- {c}" for c in context)
        return f"Context:\n{lines}\n\nUser: {message}"

    # --- hooks ---------------------------------------------------------

    @abstractmethod
    async def _setup(self, config: ProviderConfig) -> None:
        ...

    @abstractmethod
    async def _chat(self, message: str, context: List[str]) -> str:
        ...

    @abstractmethod
    async def _embed(self, text: str) -> Sequence[float]:
        ...

    async def _probe(self) -> Optional[str]:
        """Raise if the backend cannot serve requests right now."""
        return None

    async def _teardown(self) -> None:
        return None
