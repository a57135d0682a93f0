"""InMemoryCacheStore — dict-backed ``ICacheStore`` with TTL and tags."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class InMemoryCacheStore:
    """Process-local cache.

    Entries expire ``ttl_seconds`` after they are written. ``tags(names)``
    returns a view whose writes are indexed under every tag, so that
    ``flush()`` drops them together.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._tag_index: dict[str, set[str]] = {}

    # ── ICacheStore ──────────────────────────────────────────────

    def remember(self, key: str, ttl_seconds: int, producer: Callable[[], Any]) -> Any:
        if self.has(key):
            return self._entries[key][0]
        value = producer()
        self.put(key, value, ttl_seconds)
        return value

    def forget(self, key: str) -> None:
        self._entries.pop(key, None)
        for keys in self._tag_index.values():
            keys.discard(key)

    def tags(self, names: Sequence[str]) -> TaggedCache:
        return TaggedCache(self, list(names))

    # ── Direct access ────────────────────────────────────────────

    def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        expires = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries[key] = (value, expires)

    def get(self, key: str) -> Any | None:
        return self._entries[key][0] if self.has(key) else None

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        expires = entry[1]
        if expires is not None and self._clock() >= expires:
            self.forget(key)
            return False
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._tag_index.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # ── Tag bookkeeping ──────────────────────────────────────────

    def _index(self, names: Sequence[str], key: str) -> None:
        for name in names:
            self._tag_index.setdefault(name, set()).add(key)

    def _flush(self, names: Sequence[str]) -> None:
        for name in names:
            for key in self._tag_index.pop(name, set()):
                self._entries.pop(key, None)


class TaggedCache:
    """View of an :class:`InMemoryCacheStore` scoped to a set of tags."""

    def __init__(self, store: InMemoryCacheStore, names: list[str]) -> None:
        self._store = store
        self.names = names

    def remember(self, key: str, ttl_seconds: int, producer: Callable[[], Any]) -> Any:
        value = self._store.remember(key, ttl_seconds, producer)
        self._store._index(self.names, key)
        return value

    def forget(self, key: str) -> None:
        self._store.forget(key)

    def flush(self) -> None:
        self._store._flush(self.names)
