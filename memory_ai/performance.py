from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Deque, Dict, Optional, TypeVar

import numpy as np

T = TypeVar("T")

MAX_MEASUREMENTS = 100


@dataclass(frozen=True)
class PerformanceStats:
    count: int
    min: float
    max: float
    avg: float
    median: float
    p95: float
    p99: float

    def to_dict(self) -> dict:
        return asdict(self)


class PerformanceMonitor:
    """Rolling per-operation timings, in milliseconds."""

    def __init__(self, max_measurements: int = MAX_MEASUREMENTS):
        self._max = max_measurements
        self._metrics: Dict[str, Deque[float]] = {}

    async def measure(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        start = time.perf_counter()
        try:
            return await fn()
        finally:
            self.record(name, (time.perf_counter() - start) * 1000.0)

    def measure_sync(self, name: str, fn: Callable[[], T]) -> T:
        start = time.perf_counter()
        try:
            return fn()
        finally:
            self.record(name, (time.perf_counter() - start) * 1000.0)

    def record(self, name: str, duration_ms: float) -> None:
        if name not in self._metrics:
            self._metrics[name] = deque(maxlen=self._max)
        self._metrics[name].append(float(duration_ms))

    def get_stats(self, name: str) -> Optional[PerformanceStats]:
        values = self._metrics.get(name)
        if not values:
            return None
        arr = np.asarray(values, dtype=np.float64)
        return PerformanceStats(
            count=int(arr.size),
            min=float(arr.min()),
            max=float(arr.max()),
            avg=float(arr.mean()),
            median=float(np.percentile(arr, 50)),
            p95=float(np.percentile(arr, 95)),
            p99=float(np.percentile(arr, 99)),
        )

    def get_all_stats(self) -> Dict[str, PerformanceStats]:
        out: Dict[str, PerformanceStats] = {}
        for name in self._metrics:
            stats = self.get_stats(name)
            if stats is not None:
                out[name] = stats
        return out

    def clear(self, name: Optional[str] = None) -> None:
        if name is None:
            self._metrics.clear()
        else:
            self._metrics.pop(name, None)
