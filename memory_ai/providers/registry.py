"""
Provider registry and selection with fallback.

Providers are registered in priority order. ``select_provider`` tries the
preferred one first and then every other registered provider in order,
returning the first that initializes and reports healthy.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from memory_ai.errors import NoProviderAvailableError, ProviderUnavailableError
from memory_ai.providers.base import BaseProvider, ConfigLike
from memory_ai.providers.mock_provider import MockProvider
from memory_ai.providers.ollama_provider import OllamaProvider
from memory_ai.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], BaseProvider]


class ProviderRegistry:
    def __init__(self, factories: Optional[Sequence[Tuple[str, ProviderFactory]]] = None):
        self._factories: "OrderedDict[str, ProviderFactory]" = OrderedDict()
        self._active: List[BaseProvider] = []
        for name, factory in factories or ():
            self.register(name, factory)

    def register(self, name: str, factory: ProviderFactory) -> None:
        if name in self._factories:
            raise ValueError(f"Provider '{name}' is already registered")
        self._factories[name] = factory

    def get_available_providers(self) -> List[str]:
        return list(self._factories)

    def create_provider(self, name: str) -> BaseProvider:
        try:
            factory = self._factories[name]
        except KeyError:
            raise KeyError(f"Unknown provider: {name}") from None
        return factory()

    async def _try_provider(self, name: str, config: ConfigLike) -> BaseProvider:
        provider = self.create_provider(name)
        try:
            await provider.initialize(config)
            health = await provider.health_check()
        except Exception:
            await provider.dispose()
            raise
        if not health.available:
            await provider.dispose()
            raise ProviderUnavailableError(name, cause=RuntimeError(health.message))
        return provider

    async def select_provider(
        self,
        preferred: Optional[str] = None,
        config: ConfigLike = None,
    ) -> BaseProvider:
        order = list(self._factories)
        if preferred:
            if preferred in self._factories:
                order.remove(preferred)
                order.insert(0, preferred)
            else:
                logger.warning("Preferred provider %s is not registered", preferred)

        failures: List[Tuple[str, BaseException]] = []
        for name in order:
            try:
                provider = await self._try_provider(name, config)
            except Exception as e:
                logger.warning("Provider %s unavailable: %s", name, e, extra={"provider": name})
                failures.append((name, e))
                continue

            if failures:
                logger.info("Falling back to provider %s", name, extra={"provider": name})
            self._active.append(provider)
            return provider

        lines = "\n".join(f"  - {name}: {err}" for name, err in failures)
        raise NoProviderAvailableError(
            f"No AI provider available. Tried {len(failures)} provider(s):\n{lines}"
        )

    async def check_provider_availability(self, config: ConfigLike = None) -> Dict[str, bool]:
        out: Dict[str, bool] = {}
        for name in self._factories:
            try:
                provider = await self._try_provider(name, config)
            except Exception as e:
                logger.debug("Availability check for %s failed: %s", name, e)
                out[name] = False
            else:
                await provider.dispose()
                out[name] = True
        return out

    async def dispose_all(self) -> None:
        active, self._active = self._active, []
        for provider in active:
            try:
                await provider.dispose()
            except Exception:
                logger.exception("Failed to dispose provider %s", provider.name)


def default_registry() -> ProviderRegistry:
    return ProviderRegistry(
        [
            ("ollama", OllamaProvider),
            ("openai", OpenAIProvider),
            ("mock", MockProvider),
        ]
    )
