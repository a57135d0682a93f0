"""Query optimization hints: column selection, eager loading, index hints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, MutableMapping

    from .ports.query import IQuery


class QueryOptimizer:
    def __init__(self) -> None:
        self.columns: list[str] | None = None
        self.relations: list[str] = []
        self.index: str | None = None

    def select_columns(self, columns: Iterable[str]) -> None:
        self.columns = list(columns)

    def with_relations(self, relations: str | Iterable[str]) -> None:
        if isinstance(relations, str):
            relations = [relations]
        self.relations = list(dict.fromkeys([*self.relations, *relations]))

    def use_index(self, index: str) -> None:
        self.index = index

    def apply(self, query: IQuery, options: MutableMapping[str, Any]) -> None:
        """Push the recorded hints onto *query*.

        A numeric ``chunk_size`` option also switches ``use_chunking`` on.
        """
        if self.columns is not None:
            query.select(self.columns)
        if self.relations:
            query.eager_load(self.relations)
        if self.index is not None:
            query.use_index(self.index)
        chunk_size = options.get("chunk_size")
        if isinstance(chunk_size, int | float) and not isinstance(chunk_size, bool):
            options["use_chunking"] = True
