"""ICacheStore — protocol for result caching."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


@runtime_checkable
class ICacheStore(Protocol):
    """
    Read-through cache used by the smart-caching path.

    Stores may additionally implement ``tags(names)`` returning an
    :class:`ITaggedCacheStore`; filters detect it with ``hasattr``.
    """

    def remember(self, key: str, ttl_seconds: int, producer: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, or call *producer*, store and
        return its result."""
        ...

    def forget(self, key: str) -> None:
        """Remove *key* from the cache."""
        ...


@runtime_checkable
class ITaggedCacheStore(ICacheStore, Protocol):
    """A view of a cache store scoped to a set of tags."""

    def flush(self) -> None:
        """Drop every entry written through this tag set."""
        ...


@runtime_checkable
class ITaggableCacheStore(ICacheStore, Protocol):
    def tags(self, names: Sequence[str]) -> ITaggedCacheStore: ...
