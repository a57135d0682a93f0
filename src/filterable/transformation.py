"""Per-key value transformers, run after validation and before dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping


class ValueTransformer:
    def __init__(self) -> None:
        self.transformers: dict[str, Callable[[Any], Any]] = {}

    def register(self, key: str, transformer: Callable[[Any], Any]) -> None:
        """Register *transformer* for *key*, replacing any previous one."""
        self.transformers[key] = transformer

    def transform(self, key: str, value: Any) -> Any:
        transformer = self.transformers.get(key)
        return transformer(value) if transformer is not None else value

    def apply(self, filterables: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of *filterables* with every registered transformer run."""
        return {key: self.transform(key, value) for key, value in filterables.items()}


def transform_array(values: Iterable[Any], transformer: Callable[[Any], Any]) -> list[Any]:
    """Apply *transformer* to each element of *values*.

    Handy inside transformers for multi-valued keys::

        filter.register_transformer(
            "ids", lambda ids: transform_array(ids, int)
        )
    """
    return [transformer(value) for value in values]
