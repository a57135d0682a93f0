"""MemoryQuery — list-backed ``IQuery`` for tests and small datasets."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ...ports.query import MISSING, Predicate, QueryShape, normalize_where
from .operators import MemoryOperatorRegistry, build_default_registry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence


def resolve_field(record: Any, path: str) -> Any:
    """Read a dotted *path* from a mapping or object; missing → ``None``."""
    current = record
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


class _LazyRows:
    """Restartable iterable; each pass re-runs the query in chunks."""

    __slots__ = ("_query", "_size")

    def __init__(self, query: MemoryQuery, size: int) -> None:
        self._query = query
        self._size = size

    def __iter__(self) -> Iterator[Any]:
        rows = self._query._execute()
        for start in range(0, len(rows), self._size):
            yield from rows[start : start + self._size]


class MemoryQuery:
    """In-memory implementation of ``IQuery``.

    Records are mappings or plain objects. Predicates are evaluated with a
    :class:`MemoryOperatorRegistry`; ordering is stable, so unordered results
    keep storage order.
    """

    def __init__(
        self,
        records: Iterable[Any] = (),
        *,
        name: str = "memory",
        registry: MemoryOperatorRegistry | None = None,
    ) -> None:
        self.name = name
        self._records = list(records)
        self._registry = registry or build_default_registry()
        self._predicates: list[Predicate] = []
        self._orders: list[tuple[str, str]] = []
        self.columns: list[str] | None = None
        self.relations: list[str] = []
        self.index: str | None = None

    # ── Predicates ───────────────────────────────────────────────

    def _add(self, column: str, operator: str, value: Any) -> MemoryQuery:
        if not self._registry.has(operator):
            raise ValueError(f"Unsupported operator: {operator!r}")
        self._predicates.append(Predicate(column, operator, value))
        return self

    def where(self, column: str, operator_or_value: Any, value: Any = MISSING) -> MemoryQuery:
        operator, resolved = normalize_where(operator_or_value, value)
        return self._add(column, operator, resolved)

    def where_in(self, column: str, values: Iterable[Any]) -> MemoryQuery:
        return self._add(column, "in", list(values))

    def where_not_in(self, column: str, values: Iterable[Any]) -> MemoryQuery:
        return self._add(column, "not_in", list(values))

    def where_between(self, column: str, low: Any, high: Any) -> MemoryQuery:
        return self._add(column, "between", (low, high))

    def order_by(self, column: str, direction: str = "asc") -> MemoryQuery:
        self._orders.append((column, direction.lower()))
        return self

    # ── Optimization hints ───────────────────────────────────────

    def select(self, columns: Sequence[str]) -> MemoryQuery:
        self.columns = list(columns)
        return self

    def eager_load(self, relations: Sequence[str]) -> MemoryQuery:
        self.relations = list(dict.fromkeys([*self.relations, *relations]))
        return self

    def use_index(self, index: str) -> MemoryQuery:
        self.index = index
        return self

    # ── Execution ────────────────────────────────────────────────

    def _matches(self, record: Any) -> bool:
        return all(
            self._registry.evaluate(p.operator, resolve_field(record, p.column), p.value)
            for p in self._predicates
        )

    def _project(self, record: Any) -> Any:
        if self.columns is None or not isinstance(record, Mapping):
            return record
        return {column: record.get(column) for column in self.columns}

    def _execute(self) -> list[Any]:
        rows = [record for record in self._records if self._matches(record)]
        # Apply the last ordering first so earlier ones take precedence.
        # Missing values sort last in either direction.
        for column, direction in reversed(self._orders):
            present = [r for r in rows if resolve_field(r, column) is not None]
            missing = [r for r in rows if resolve_field(r, column) is None]
            present.sort(
                key=lambda r, c=column: resolve_field(r, c),
                reverse=direction == "desc",
            )
            rows = present + missing
        return [self._project(row) for row in rows]

    def get(self) -> list[Any]:
        return self._execute()

    def count(self) -> int:
        return sum(1 for record in self._records if self._matches(record))

    def chunk(self, size: int, callback: Callable[[list[Any]], Any]) -> bool:
        rows = self._execute()
        for start in range(0, len(rows), size):
            if callback(rows[start : start + size]) is False:
                return False
        return True

    def cursor(self) -> Iterator[Any]:
        yield from self._execute()

    def lazy(self, size: int) -> Iterable[Any]:
        return _LazyRows(self, size)

    # ── Introspection ────────────────────────────────────────────

    def describe(self) -> QueryShape:
        return QueryShape(predicates=tuple(self._predicates), joins=0)

    @property
    def predicates(self) -> list[Predicate]:
        return list(self._predicates)

    def __len__(self) -> int:
        return len(self._records)
