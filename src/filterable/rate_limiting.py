"""
Complexity scoring and the advisory rate limiter.

Each request is scored before dispatch::

    score = Σ weight(key) × (len(value) if collection else 1)

and checked against three gates, in order: the number of active
filterables, the complexity score, and a per-caller throttle window kept in
an :class:`~filterable.ports.rate_limit.IRateLimitStore`. Rejections are
reported, never raised; the caller decides what to do with them.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .resolver import is_collection

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .ports.rate_limit import IRateLimitStore

DEFAULT_MAX_FILTERS = 10
DEFAULT_MAX_COMPLEXITY = 100
DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_WINDOW_SECONDS = 60


def complexity_score(
    filterables: Mapping[str, Any], weights: Mapping[str, float] | None = None
) -> float:
    """Weighted size of the active filterables (weight defaults to 1)."""
    weights = weights or {}
    score: float = 0
    for key, value in filterables.items():
        size = len(value) if is_collection(value) else 1
        score += weights.get(key, 1) * size
    return score


def default_decay(score: float) -> int:
    """Seconds a throttle hit stays in the window: one per 10 points."""
    return max(1, math.ceil(score / 10))


def throttle_key(
    client_ip: str | None, filter_cls: type, principal_id: Any | None = None
) -> str:
    """Rate-limit key for one caller against one filter class."""
    parts = [
        client_ip or "unknown",
        f"{filter_cls.__module__}.{filter_cls.__qualname__}",
    ]
    if principal_id is not None:
        parts.append(f"user:{principal_id}")
    return "filter:" + hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of :meth:`RateLimiter.check`."""

    passed: bool
    score: float
    reason: str | None = None
    detail: Mapping[str, Any] | None = None

    def __bool__(self) -> bool:
        return self.passed


class RateLimiter:
    """Count, complexity and throttle gates.

    Without a store the throttle gate is skipped.
    """

    def __init__(
        self,
        store: IRateLimitStore | None = None,
        *,
        max_filters: int = DEFAULT_MAX_FILTERS,
        max_complexity: float = DEFAULT_MAX_COMPLEXITY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        weights: Mapping[str, float] | None = None,
        decay: Callable[[float], int] | None = None,
    ) -> None:
        self.store = store
        self.max_filters = max_filters
        self.max_complexity = max_complexity
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.weights: dict[str, float] = dict(weights or {})
        self.decay = decay or default_decay

    def score(self, filterables: Mapping[str, Any]) -> float:
        return complexity_score(filterables, self.weights)

    def check(self, filterables: Mapping[str, Any], key: str) -> RateLimitDecision:
        """Run the gates in order and return the first rejection, if any."""
        score = self.score(filterables)

        if len(filterables) > self.max_filters:
            return RateLimitDecision(
                False,
                score,
                "Too many filters applied",
                {"count": len(filterables), "max": self.max_filters},
            )

        if score > self.max_complexity:
            return RateLimitDecision(
                False,
                score,
                "Filter complexity exceeds limit",
                {"complexity": score, "max": self.max_complexity},
            )

        if self.store is None:
            return RateLimitDecision(True, score)

        if self.store.too_many_attempts(key, self.max_attempts, self.window_seconds):
            return RateLimitDecision(
                False,
                score,
                "Rate limit exceeded for filters",
                {"key": key, "max_attempts": self.max_attempts},
            )

        self.store.hit(key, self.decay(score))
        return RateLimitDecision(True, score)
