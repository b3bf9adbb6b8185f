"""
Periodic provider health monitoring.

Status is derived from consecutive failures: none is healthy, fewer than
``failure_threshold`` is degraded, otherwise unavailable. Uptime is the
share of successful checks in the bounded history window.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, List, Optional

from memory_ai.config import (
    HEALTH_CHECK_INTERVAL,
    HEALTH_FAILURE_THRESHOLD,
    HEALTH_MAX_HISTORY,
)
from memory_ai.providers.base import BaseProvider

logger = logging.getLogger(__name__)


class MonitorStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class HealthCheckResult:
    success: bool
    timestamp: datetime
    message: str = ""


@dataclass(frozen=True)
class HealthStatus:
    provider_name: Optional[str]
    status: MonitorStatus
    last_check: Optional[datetime]
    consecutive_failures: int
    uptime_percent: float
    message: str = ""

    def to_dict(self) -> dict:
        d = asdict(self)
        d["status"] = self.status.value
        d["last_check"] = self.last_check.isoformat() if self.last_check else None
        return d


StatusCallback = Callable[[HealthStatus], Any]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthMonitor:
    def __init__(
        self,
        check_interval: float = HEALTH_CHECK_INTERVAL,
        max_history: int = HEALTH_MAX_HISTORY,
        failure_threshold: int = HEALTH_FAILURE_THRESHOLD,
        on_status_change: Optional[StatusCallback] = None,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.check_interval = check_interval
        self.failure_threshold = failure_threshold
        self._on_status_change = on_status_change

        self._provider: Optional[BaseProvider] = None
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._checks: Deque[HealthCheckResult] = deque(maxlen=max_history)
        self._status = HealthStatus(
            provider_name=None,
            status=MonitorStatus.UNAVAILABLE,
            last_check=None,
            consecutive_failures=0,
            uptime_percent=100.0,
        )

    # --- lifecycle -----------------------------------------------------

    async def start_monitoring(self, provider: BaseProvider, interval: Optional[float] = None) -> HealthStatus:
        self.stop_monitoring()

        self._provider = provider
        self._status = replace(self._status, provider_name=provider.name)
        interval = self.check_interval if interval is None else interval

        status = await self.check_now()
        self._task = asyncio.create_task(self._run(provider, interval))
        logger.info("Started monitoring %s (interval: %ss)", provider.name, interval, extra={"provider": provider.name})
        return status

    def stop_monitoring(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Stopped monitoring %s", self._status.provider_name)
        self._provider = None

    def is_monitoring(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self, provider: BaseProvider, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self._provider is not provider:
                return
            try:
                await self._check()
            except Exception:
                logger.exception("Health monitor loop error")

    # --- checks --------------------------------------------------------

    async def check_now(self) -> HealthStatus:
        await self._check()
        return self.get_status()

    async def _check(self) -> None:
        async with self._lock:
            provider = self._provider
            if provider is None:
                return

            previous = self._status.status
            try:
                health = await provider.health_check()
                success = health.available
                message = health.message or ("" if success else "Provider reported unavailable")
            except Exception as e:
                logger.warning("Health check failed: %s", e, extra={"provider": provider.name})
                success = False
                message = str(e) or "Health check failed"

            now = _now()
            self._checks.append(HealthCheckResult(success=success, timestamp=now, message=message))

            if success:
                failures = 0
                status = MonitorStatus.HEALTHY
            else:
                failures = self._status.consecutive_failures + 1
                if failures >= self.failure_threshold:
                    status = MonitorStatus.UNAVAILABLE
                else:
                    status = MonitorStatus.DEGRADED

            self._status = HealthStatus(
                provider_name=provider.name,
                status=status,
                last_check=now,
                consecutive_failures=failures,
                uptime_percent=self._uptime(),
                message=message,
            )

            if status != previous:
                logger.info(
                    "Health status changed: %s -> %s",
                    previous.value,
                    status.value,
                    extra={"provider": provider.name},
                )
                await self._notify(self._status)

    async def _notify(self, status: HealthStatus) -> None:
        if self._on_status_change is None:
            return
        try:
            result = self._on_status_change(status)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Status change callback failed")

    def _uptime(self) -> float:
        if not self._checks:
            return 100.0
        ok = sum(1 for c in self._checks if c.success)
        return round(ok / len(self._checks) * 100.0, 2)

    # --- queries -------------------------------------------------------

    def get_status(self) -> HealthStatus:
        # frozen; safe to hand out
        return self._status

    def check_history(self) -> List[HealthCheckResult]:
        return list(self._checks)

    def reset(self) -> None:
        self._checks.clear()
        self._status = HealthStatus(
            provider_name=self._status.provider_name,
            status=MonitorStatus.UNAVAILABLE,
            last_check=_now(),
            consecutive_failures=0,
            uptime_percent=100.0,
        )

    def is_healthy(self) -> bool:
        return self._status.status == MonitorStatus.HEALTHY

    def is_degraded(self) -> bool:
        return self._status.status == MonitorStatus.DEGRADED

    def is_unavailable(self) -> bool:
        return self._status.status == MonitorStatus.UNAVAILABLE

    def consecutive_failures(self) -> int:
        return self._status.consecutive_failures

    def uptime(self) -> float:
        return self._status.uptime_percent


health_monitor = HealthMonitor()
