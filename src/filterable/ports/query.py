"""IQuery — protocol for the chainable query a filter mutates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence


class _Missing:
    """Sentinel type for an omitted ``value`` in ``where(column, value)``."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


@dataclass(frozen=True)
class Predicate:
    """One predicate recorded on a query: ``column operator value``."""

    column: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class QueryShape:
    """Introspection snapshot of a query, used by the smart-caching heuristic.

    Attributes:
        predicates: Predicates in the order they were added.
        joins: Number of joins the query performs.
    """

    predicates: tuple[Predicate, ...] = field(default_factory=tuple)
    joins: int = 0

    @property
    def operators(self) -> list[str]:
        return [p.operator for p in self.predicates]


_OPERATOR_ALIASES = {"==": "=", "<>": "!=", "not in": "not_in"}


def normalize_where(
    operator_or_value: Any, value: Any = MISSING
) -> tuple[str, Any]:
    """Resolve the two-argument and three-argument ``where`` forms.

    ``where("status", "active")`` means equality; ``where("age", ">", 18)``
    names the operator explicitly.
    """
    if value is MISSING:
        return "=", operator_or_value
    operator = str(operator_or_value).strip().lower()
    return _OPERATOR_ALIASES.get(operator, operator), value


@runtime_checkable
class IQuery(Protocol):
    """Opaque, chainable query representation.

    Predicate methods mutate the query in place and return it, so that both
    ``query.where(...)`` as a statement and chained calls work.
    """

    # ── Predicates ───────────────────────────────────────────────

    def where(
        self, column: str, operator_or_value: Any, value: Any = MISSING
    ) -> IQuery: ...

    def where_in(self, column: str, values: Iterable[Any]) -> IQuery: ...

    def where_not_in(self, column: str, values: Iterable[Any]) -> IQuery: ...

    def where_between(self, column: str, low: Any, high: Any) -> IQuery: ...

    def order_by(self, column: str, direction: str = "asc") -> IQuery: ...

    # ── Optimization hints ───────────────────────────────────────

    def select(self, columns: Sequence[str]) -> IQuery: ...

    def eager_load(self, relations: Sequence[str]) -> IQuery: ...

    def use_index(self, index: str) -> IQuery: ...

    # ── Terminal operations ──────────────────────────────────────

    def get(self) -> list[Any]: ...

    def count(self) -> int: ...

    def chunk(self, size: int, callback: Callable[[list[Any]], Any]) -> bool:
        """Feed results to *callback* in chunks of *size*.

        Returns ``False`` when the callback stopped iteration by returning
        ``False``, ``True`` otherwise.
        """
        ...

    def cursor(self) -> Iterator[Any]: ...

    def lazy(self, size: int) -> Iterable[Any]:
        """Restartable iterable fetching *size* rows per round-trip."""
        ...

    # ── Introspection ────────────────────────────────────────────

    def describe(self) -> QueryShape: ...
