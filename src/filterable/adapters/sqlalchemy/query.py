"""
SqlAlchemyQuery — ``IQuery`` over a SQLAlchemy 2.0 ``Select`` statement.

Predicates are compiled to column expressions as they are added. Dotted
columns (``"author.name"``) join the relationship once and filter on the
related model; every join is counted for :meth:`describe`.

Usage::

    with Session(engine) as session:
        query = SqlAlchemyQuery(session, Post)
        posts = PostFilter(source).run_query(query)
"""

from __future__ import annotations

import operator as op_module
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import asc, desc, func, inspect, select
from sqlalchemy.orm import load_only, selectinload

from ...ports.query import MISSING, Predicate, QueryShape, normalize_where

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.orm import Session

DEFAULT_YIELD_PER = 1000

_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "=": op_module.eq,
    "!=": op_module.ne,
    ">": op_module.gt,
    "<": op_module.lt,
    ">=": op_module.ge,
    "<=": op_module.le,
    "like": lambda column, value: column.like(value),
    "ilike": lambda column, value: column.ilike(value),
    "in": lambda column, value: column.in_(list(value)),
    "not_in": lambda column, value: column.not_in(list(value)),
    "between": lambda column, value: column.between(value[0], value[1]),
}


class _LazyRows:
    """Restartable iterable; each pass re-executes with ``yield_per``."""

    __slots__ = ("_query", "_size")

    def __init__(self, query: SqlAlchemyQuery, size: int) -> None:
        self._query = query
        self._size = size

    def __iter__(self) -> Iterator[Any]:
        for partition in self._query._partitions(self._size):
            yield from partition


class SqlAlchemyQuery:
    """Chainable query for one mapped model, executed through a sync ``Session``."""

    def __init__(
        self, session: Session, model: type[Any], statement: Select[Any] | None = None
    ) -> None:
        self.session = session
        self.model = model
        self._stmt: Select[Any] = statement if statement is not None else select(model)
        self._predicates: list[Predicate] = []
        self._joined: dict[str, type[Any]] = {}

    @property
    def statement(self) -> Select[Any]:
        return self._stmt

    # ── Column resolution ────────────────────────────────────────

    def _column(self, path: str) -> Any:
        """Resolve ``"name"`` or ``"relation.name"``, joining as needed."""
        model = self.model
        *relations, attr = path.split(".")
        trail = ""
        for rel_name in relations:
            trail = f"{trail}.{rel_name}" if trail else rel_name
            rel_attr = getattr(model, rel_name, None)
            if rel_attr is None:
                raise AttributeError(f"Model {model} has no relationship {rel_name}")
            if trail not in self._joined:
                self._stmt = self._stmt.join(rel_attr)
                self._joined[trail] = rel_attr.property.mapper.class_
            model = self._joined[trail]
        column = getattr(model, attr, None)
        if column is None:
            raise AttributeError(f"Model {model} has no attribute {attr}")
        return column

    def _add(self, column: str, operator: str, value: Any) -> SqlAlchemyQuery:
        compile_op = _OPERATORS.get(operator)
        if compile_op is None:
            raise ValueError(f"Unsupported operator: {operator!r}")
        expr = cast("ColumnElement[bool]", compile_op(self._column(column), value))
        self._stmt = self._stmt.where(expr)
        self._predicates.append(Predicate(column, operator, value))
        return self

    # ── Predicates ───────────────────────────────────────────────

    def where(self, column: str, operator_or_value: Any, value: Any = MISSING) -> SqlAlchemyQuery:
        operator, resolved = normalize_where(operator_or_value, value)
        return self._add(column, operator, resolved)

    def where_in(self, column: str, values: Iterable[Any]) -> SqlAlchemyQuery:
        return self._add(column, "in", list(values))

    def where_not_in(self, column: str, values: Iterable[Any]) -> SqlAlchemyQuery:
        return self._add(column, "not_in", list(values))

    def where_between(self, column: str, low: Any, high: Any) -> SqlAlchemyQuery:
        return self._add(column, "between", (low, high))

    def order_by(self, column: str, direction: str = "asc") -> SqlAlchemyQuery:
        order = desc if direction.lower() == "desc" else asc
        self._stmt = self._stmt.order_by(order(self._column(column)))
        return self

    # ── Optimization hints ───────────────────────────────────────

    def select(self, columns: Sequence[str]) -> SqlAlchemyQuery:
        attrs = [getattr(self.model, name) for name in columns]
        self._stmt = self._stmt.options(load_only(*attrs))
        return self

    def eager_load(self, relations: Sequence[str]) -> SqlAlchemyQuery:
        for name in relations:
            self._stmt = self._stmt.options(selectinload(getattr(self.model, name)))
        return self

    def use_index(self, index: str) -> SqlAlchemyQuery:
        # Only MySQL understands index hints; other dialects ignore it.
        table = inspect(self.model).local_table
        self._stmt = self._stmt.with_hint(table, f"USE INDEX ({index})", dialect_name="mysql")
        return self

    # ── Execution ────────────────────────────────────────────────

    def _partitions(self, size: int) -> Iterator[Sequence[Any]]:
        stmt = self._stmt.execution_options(yield_per=size)
        yield from self.session.scalars(stmt).partitions(size)

    def get(self) -> list[Any]:
        return list(self.session.scalars(self._stmt).all())

    def count(self) -> int:
        subquery = self._stmt.order_by(None).subquery()
        return int(self.session.scalar(select(func.count()).select_from(subquery)) or 0)

    def chunk(self, size: int, callback: Callable[[list[Any]], Any]) -> bool:
        for partition in self._partitions(size):
            if callback(list(partition)) is False:
                return False
        return True

    def cursor(self) -> Iterator[Any]:
        stmt = self._stmt.execution_options(yield_per=DEFAULT_YIELD_PER)
        yield from self.session.scalars(stmt)

    def lazy(self, size: int) -> Iterable[Any]:
        return _LazyRows(self, size)

    # ── Introspection ────────────────────────────────────────────

    def describe(self) -> QueryShape:
        return QueryShape(predicates=tuple(self._predicates), joins=len(self._joined))

    def to_sql(self) -> str:
        return str(self._stmt.compile())
