"""Redis implementation of the throttle window store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redis import Redis

logger = logging.getLogger("filterable.redis_rate_limiter")


class RedisRateLimitStore:
    """
    ``IRateLimitStore`` using one counter per key.

    The first hit creates the counter with a TTL of ``decay_seconds``
    (``SET NX EX``); every hit then ``INCR``s it. When Redis is unavailable
    the store fails open: checks allow and hits count as zero.
    """

    def __init__(self, redis_client: Redis) -> None:
        self._redis = redis_client

    def attempts(self, key: str) -> int:
        try:
            val = self._redis.get(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis get failed for rate limit key %s: %s", key, e)
            return 0
        return int(val) if val is not None else 0

    def too_many_attempts(
        self,
        key: str,
        max_attempts: int,
        window_seconds: int,  # noqa: ARG002
    ) -> bool:
        return self.attempts(key) >= max_attempts

    def hit(self, key: str, decay_seconds: int) -> int:
        try:
            with self._redis.pipeline() as pipe:
                pipe.set(key, 0, ex=max(1, decay_seconds), nx=True)
                pipe.incr(key)
                _, count = pipe.execute()
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis hit failed for rate limit key %s: %s", key, e)
            return 0
        return int(count)

    def clear(self, key: str) -> None:
        try:
            self._redis.delete(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis delete failed for rate limit key %s: %s", key, e)
