"""Queued custom predicates added through the fluent filter API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .ports.query import MISSING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .ports.query import IQuery


class FilterChain:
    """Records predicates now and replays them on the query at apply time.

    The queue survives ``reset()``; call :meth:`clear` to drop it.
    """

    def __init__(self) -> None:
        self._queue: list[Callable[[IQuery], Any]] = []

    def __len__(self) -> int:
        return len(self._queue)

    def where(self, column: str, operator_or_value: Any, value: Any = MISSING) -> None:
        self._queue.append(lambda q: q.where(column, operator_or_value, value))

    def where_in(self, column: str, values: Iterable[Any]) -> None:
        values = list(values)
        self._queue.append(lambda q: q.where_in(column, values))

    def where_not_in(self, column: str, values: Iterable[Any]) -> None:
        values = list(values)
        self._queue.append(lambda q: q.where_not_in(column, values))

    def where_between(self, column: str, low: Any, high: Any) -> None:
        self._queue.append(lambda q: q.where_between(column, low, high))

    def order_by(self, column: str, direction: str = "asc") -> None:
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Order direction must be 'asc' or 'desc', got {direction!r}")
        self._queue.append(lambda q: q.order_by(column, direction))

    def apply(self, query: IQuery) -> None:
        for predicate in self._queue:
            predicate(query)

    def clear(self) -> None:
        self._queue.clear()
