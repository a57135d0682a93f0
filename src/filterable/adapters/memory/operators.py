"""
In-memory operator implementations for :class:`MemoryQuery`.

Each operator is an isolated strategy with a single ``evaluate`` method,
looked up by its query-operator string::

    registry = build_default_registry()
    registry.evaluate(">=", record_value, 18)
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any


class MemoryOperator(ABC):
    """Strategy interface for evaluating one operator against a value."""

    name: str

    @abstractmethod
    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        """
        Args:
            field_value: The value read from the candidate record.
            condition_value: The value given to ``where``.

        Returns:
            True if the record satisfies the predicate.
        """
        ...


class EqualOperator(MemoryOperator):
    name = "="

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value == condition_value)


class NotEqualOperator(MemoryOperator):
    name = "!="

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value != condition_value)


class _OrderingOperator(MemoryOperator):
    """Comparison that is never satisfied by a missing value."""

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        try:
            return self._compare(field_value, condition_value)
        except TypeError:
            return False

    @abstractmethod
    def _compare(self, left: Any, right: Any) -> bool: ...


class GreaterThanOperator(_OrderingOperator):
    name = ">"

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left > right)


class LessThanOperator(_OrderingOperator):
    name = "<"

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left < right)


class GreaterEqualOperator(_OrderingOperator):
    name = ">="

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left >= right)


class LessEqualOperator(_OrderingOperator):
    name = "<="

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left <= right)


def _sql_pattern_to_regex(pattern: str) -> str:
    """Convert a SQL LIKE pattern (``%``, ``_``) to an anchored regex."""
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return "^" + "".join(parts) + "$"


class LikeOperator(MemoryOperator):
    name = "like"
    flags = 0

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        regex = _sql_pattern_to_regex(str(condition_value))
        return re.match(regex, str(field_value), self.flags | re.DOTALL) is not None


class ILikeOperator(LikeOperator):
    name = "ilike"
    flags = re.IGNORECASE


class InOperator(MemoryOperator):
    name = "in"

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return field_value in list(condition_value)


class NotInOperator(MemoryOperator):
    name = "not_in"

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return field_value not in list(condition_value)


class BetweenOperator(_OrderingOperator):
    """Inclusive range; the condition value is a ``(low, high)`` pair."""

    name = "between"

    def _compare(self, left: Any, right: Any) -> bool:
        low, high = right
        return bool(low <= left <= high)


class MemoryOperatorRegistry:
    """Registry of :class:`MemoryOperator` instances keyed by operator string."""

    def __init__(self) -> None:
        self._operators: dict[str, MemoryOperator] = {}

    def register(self, *operators: MemoryOperator) -> None:
        for operator in operators:
            self._operators[operator.name] = operator

    def has(self, name: str) -> bool:
        return name in self._operators

    @property
    def supported_operators(self) -> set[str]:
        return set(self._operators)

    def evaluate(self, name: str, field_value: Any, condition_value: Any) -> bool:
        operator = self._operators.get(name)
        if operator is None:
            raise ValueError(f"Unsupported operator: {name!r}")
        return operator.evaluate(field_value, condition_value)


def build_default_registry() -> MemoryOperatorRegistry:
    registry = MemoryOperatorRegistry()
    registry.register(
        EqualOperator(),
        NotEqualOperator(),
        GreaterThanOperator(),
        LessThanOperator(),
        GreaterEqualOperator(),
        LessEqualOperator(),
        LikeOperator(),
        ILikeOperator(),
        InOperator(),
        NotInOperator(),
        BetweenOperator(),
    )
    return registry
