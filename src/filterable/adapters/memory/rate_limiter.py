"""InMemoryRateLimitStore — process-local ``IRateLimitStore``."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class InMemoryRateLimitStore:
    """Fixed-window attempt counters.

    A window opens on the first hit for a key and lasts ``decay_seconds``;
    later hits in the same window only increment the counter.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}

    def attempts(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None:
            return 0
        count, expires = window
        if self._clock() >= expires:
            del self._windows[key]
            return 0
        return count

    def too_many_attempts(
        self,
        key: str,
        max_attempts: int,
        window_seconds: int,  # noqa: ARG002
    ) -> bool:
        return self.attempts(key) >= max_attempts

    def hit(self, key: str, decay_seconds: int) -> int:
        count = self.attempts(key)
        if count == 0:
            expires = self._clock() + decay_seconds
        else:
            expires = self._windows[key][1]
        self._windows[key] = (count + 1, expires)
        return count + 1

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)
