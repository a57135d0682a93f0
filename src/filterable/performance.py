"""Execution timing and ad-hoc metrics for one filter run."""

from __future__ import annotations

import time
from typing import Any


class PerformanceMonitor:
    """Wall-clock timing around the apply pipeline plus a free-form metric bag.

    Timing uses :func:`time.perf_counter`; ``execution_time`` is in seconds.
    """

    def __init__(self) -> None:
        self.metrics: dict[str, Any] = {}
        self._started: float | None = None

    def start(self) -> None:
        self._started = time.perf_counter()

    def stop(self) -> float | None:
        if self._started is None:
            return None
        elapsed = time.perf_counter() - self._started
        self._started = None
        self.metrics["execution_time"] = elapsed
        return elapsed

    def add(self, key: str, value: Any) -> None:
        self.metrics[key] = value

    @property
    def execution_time(self) -> float | None:
        return self.metrics.get("execution_time")

    def clear(self) -> None:
        self.metrics.clear()
        self._started = None
