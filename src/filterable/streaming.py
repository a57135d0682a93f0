"""
Memory-bounded iteration over a filter's results.

``LazyResults`` is a restartable, finite sequence: every iteration re-issues
the chunked fetch against the query, and nothing is cached between passes.

Usage::

    for post in PostFilter(source).set_query(query).lazy(chunk_size=200):
        process(post)

    titles = filter.map(lambda post: post.title)   # still lazy
    total = filter.reduce(lambda acc, post: acc + post.views, 0)
"""

from __future__ import annotations

import logging
from functools import reduce as _reduce
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from .filter import Filter

logger = logging.getLogger("filterable.streaming")

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_CHUNK_SIZE = 1000
STREAM_NOT_APPLIED = "You must call apply() before streaming results."


class LazyResults(Generic[T]):
    """
    Restartable lazy sequence. Iterating twice runs the underlying fetch
    twice.

    Parameters
    ----------
    factory:
        Zero-argument callable returning a fresh iterator on each call.
    chunk_size:
        Rows fetched per round-trip (informational).
    """

    __slots__ = ("_factory", "chunk_size")

    def __init__(self, factory: Callable[[], Iterator[T]], chunk_size: int) -> None:
        self._factory = factory
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[T]:
        return self._factory()

    # -- derived sequences ----------------------------------------------------

    def map(self, fn: Callable[[T], U]) -> LazyResults[U]:
        return LazyResults(lambda: (fn(item) for item in self), self.chunk_size)

    def filter(self, predicate: Callable[[T], bool]) -> LazyResults[T]:
        return LazyResults(
            lambda: (item for item in self if predicate(item)), self.chunk_size
        )

    # -- terminal operations --------------------------------------------------

    def reduce(self, fn: Callable[[Any, T], Any], initial: Any = None) -> Any:
        return _reduce(fn, self, initial)

    def each(self, callback: Callable[[T], Any]) -> None:
        """Call *callback* per item; a callback returning ``False`` stops."""
        for item in self:
            if callback(item) is False:
                break

    def first(self) -> T | None:
        return next(iter(self), None)

    def to_list(self) -> list[T]:
        """Materialize the sequence. Defeats the point on large result sets."""
        return list(self)


class StreamingExecutor:
    """Chunked and lazy execution of one filter's applied query."""

    def __init__(self, owner: Filter) -> None:
        self._owner = owner

    def chunk_size(self, chunk_size: int | None = None) -> int:
        """Explicit size, else the ``chunk_size`` option, else 1000; at least 1."""
        if chunk_size is None:
            option = self._owner.options.get("chunk_size")
            chunk_size = (
                int(option)
                if isinstance(option, int | float) and not isinstance(option, bool)
                else DEFAULT_CHUNK_SIZE
            )
        return max(1, int(chunk_size))

    # ── Implicitly applied entry points ──────────────────────────

    def collect(self, chunk_size: int | None = None) -> list[Any]:
        """Fetch every row chunk by chunk and accumulate them."""
        query = self._owner.ensure_applied(implicit=True)
        size = self.chunk_size(chunk_size)
        items: list[Any] = []
        query.chunk(size, items.extend)
        logger.debug("Collected %d rows in chunks of %d", len(items), size)
        return items

    def lazy(self, chunk_size: int | None = None) -> LazyResults[Any]:
        query = self._owner.ensure_applied(implicit=True)
        size = self.chunk_size(chunk_size)
        return LazyResults(lambda: iter(query.lazy(size)), size)

    def lazy_each(self, callback: Callable[[Any], Any], chunk_size: int | None = None) -> None:
        self.lazy(chunk_size).each(callback)

    def cursor(self) -> Iterator[Any]:
        """Single-pass iterator over the results."""
        return self._owner.ensure_applied(implicit=True).cursor()

    def chunk(self, size: int, callback: Callable[[list[Any]], Any]) -> bool:
        query = self._owner.ensure_applied(implicit=True)
        return query.chunk(max(1, int(size)), callback)

    def map(self, fn: Callable[[Any], Any], chunk_size: int | None = None) -> LazyResults[Any]:
        return self.lazy(chunk_size).map(fn)

    def filter(
        self, predicate: Callable[[Any], bool], chunk_size: int | None = None
    ) -> LazyResults[Any]:
        return self.lazy(chunk_size).filter(predicate)

    def reduce(
        self, fn: Callable[[Any, Any], Any], initial: Any = None, chunk_size: int | None = None
    ) -> Any:
        return self.lazy(chunk_size).reduce(fn, initial)

    # ── Explicitly applied entry points ──────────────────────────

    def stream(self, chunk_size: int | None = None) -> LazyResults[Any]:
        query = self._owner.ensure_applied(implicit=False, message=STREAM_NOT_APPLIED)
        size = self.chunk_size(chunk_size)
        return LazyResults(lambda: iter(query.lazy(size)), size)

    def stream_generator(self, chunk_size: int | None = None) -> Iterator[Any]:
        query = self._owner.ensure_applied(implicit=False, message=STREAM_NOT_APPLIED)
        size = self.chunk_size(chunk_size)

        def _generate() -> Iterator[Any]:
            yield from query.lazy(size)

        return _generate()

