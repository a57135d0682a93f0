"""IRateLimitStore — counter storage for the throttle gate."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IRateLimitStore(Protocol):
    """Windowed attempt counters keyed by caller identity."""

    def too_many_attempts(self, key: str, max_attempts: int, window_seconds: int) -> bool:
        """Whether *key* already reached *max_attempts* in the current window."""
        ...

    def hit(self, key: str, decay_seconds: int) -> int:
        """Record one attempt that expires after *decay_seconds*.

        Returns the attempt count after the hit.
        """
        ...
