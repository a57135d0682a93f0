"""Redis implementation of the filter result cache."""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from redis import Redis

logger = logging.getLogger("filterable.redis_cache")

_MISS = object()


def _encode(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        # Pydantic V2
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class RedisCacheStore:
    """
    ``ICacheStore`` backed by Redis, using JSON serialization.

    Without ``row_type`` only plain JSON data (dicts, lists, strings,
    numbers) is cached. With ``row_type`` set, pydantic models and
    dataclasses of that type are stored as objects and rebuilt on every hit
    (``model_validate`` for pydantic, keyword construction for flat
    dataclasses). Values that cannot round-trip are never written, so a hit
    returns the same row types as a miss.

    Read failures are treated as misses and write failures leave the value
    uncached; both are logged and never raised. Tag membership is kept in
    Redis sets named ``{tag_prefix}{tag}``.
    """

    def __init__(
        self,
        redis_client: Redis,
        *,
        tag_prefix: str = "filterable:tag:",
        row_type: type[Any] | None = None,
    ) -> None:
        self._redis = redis_client
        self._tag_prefix = tag_prefix
        self._row_type = row_type

    def _decode_row(self, item: Any) -> Any:
        if self._row_type is None or not isinstance(item, dict):
            return item
        if hasattr(self._row_type, "model_validate"):
            return self._row_type.model_validate(item)
        return self._row_type(**item)

    def _read(self, key: str) -> Any:
        try:
            val = self._redis.get(key)
            if val is None:
                return _MISS
            data = json.loads(val)
            if isinstance(data, list):
                return [self._decode_row(item) for item in data]
            return self._decode_row(data)
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis get failed for key %s: %s", key, e)
            return _MISS

    def _write(self, key: str, value: Any, ttl_seconds: int) -> bool:
        try:
            val = json.dumps(value, default=_encode if self._row_type is not None else None)
        except (TypeError, ValueError) as e:
            logger.warning("Not caching key %s, value is not JSON serializable: %s", key, e)
            return False
        try:
            if ttl_seconds > 0:
                self._redis.setex(key, ttl_seconds, val)
            else:
                self._redis.set(key, val)
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis set failed for key %s: %s", key, e)
            return False
        return True

    def remember(self, key: str, ttl_seconds: int, producer: Callable[[], Any]) -> Any:
        cached = self._read(key)
        if cached is not _MISS:
            return cached
        value = producer()
        self._write(key, value, ttl_seconds)
        return value

    def forget(self, key: str) -> None:
        try:
            self._redis.delete(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis delete failed for key %s: %s", key, e)

    def tags(self, names: Sequence[str]) -> RedisTaggedCache:
        return RedisTaggedCache(self, [self._tag_prefix + name for name in names])


class RedisTaggedCache:
    """Tagged view: every key written is added to each tag's set."""

    def __init__(self, store: RedisCacheStore, tag_keys: list[str]) -> None:
        self._store = store
        self._tag_keys = tag_keys

    def remember(self, key: str, ttl_seconds: int, producer: Callable[[], Any]) -> Any:
        cached = self._store._read(key)
        if cached is not _MISS:
            return cached
        value = producer()
        if self._store._write(key, value, ttl_seconds):
            try:
                with self._store._redis.pipeline() as pipe:
                    for tag_key in self._tag_keys:
                        pipe.sadd(tag_key, key)
                    pipe.execute()
            except Exception as e:  # noqa: BLE001
                logger.warning("Redis tag index failed for key %s: %s", key, e)
        return value

    def forget(self, key: str) -> None:
        self._store.forget(key)

    def flush(self) -> None:
        """Delete every key recorded under these tags, then the tag sets."""
        redis = self._store._redis
        try:
            keys: set[Any] = set()
            for tag_key in self._tag_keys:
                keys.update(redis.smembers(tag_key))
            if keys:
                redis.delete(*keys)
            redis.delete(*self._tag_keys)
        except Exception as e:  # noqa: BLE001
            logger.warning("Redis tag flush failed for %s: %s", self._tag_keys, e)
