"""Exceptions raised by the filter orchestration engine."""

from __future__ import annotations


class FilterableError(Exception):
    """Root exception for the filterable package."""


class FilterStateError(FilterableError):
    """Base class for lifecycle contract violations."""


class ReapplicationError(FilterStateError):
    """Raised when ``apply()`` is called on a filter that is not initialized.

    Usage: call ``reset()`` before applying the same filter instance again.
    """

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(
            f"Filter cannot be reapplied (current state: {state}); "
            "call reset() first"
        )


class NotAppliedError(FilterStateError):
    """Raised when results are requested before ``apply()`` ran."""


class FilterFailedError(FilterableError):
    """Raised when results are requested from a filter whose pipeline failed.

    The underlying exception is available as ``__cause__`` and ``reason``.
    """

    def __init__(self, reason: BaseException | None) -> None:
        self.reason = reason
        message = str(reason) if reason is not None else "unknown error"
        super().__init__(f"Filters failed to apply: {message}")


class BadDispatchError(FilterableError):
    """Raised when an active filter key has no predicate method."""

    def __init__(self, method_name: str, filter_name: str, key: str | None = None) -> None:
        self.method_name = method_name
        self.filter_name = filter_name
        self.key = key
        super().__init__(f"Method [{method_name}] does not exist on {filter_name}")


class ValidationError(FilterableError):
    """Raised when filter input fails the declared validation rules.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class FeatureError(FilterableError):
    """Base class for feature registry errors."""


class UnknownFeatureError(FeatureError, ValueError):
    """Raised when a feature name is not one of :class:`Feature`."""


class FeatureLockedError(FeatureError):
    """Raised when features are toggled while the filter is applying."""



class FilterDefinitionError(FilterableError, TypeError):
    """Raised when a filter class declares a key whose predicate name is
    already part of the :class:`~filterable.filter.Filter` API."""

    def __init__(self, key: str, method_name: str, filter_name: str) -> None:
        self.key = key
        self.method_name = method_name
        self.filter_name = filter_name
        super().__init__(
            f"Filter key [{key}] on {filter_name} maps to [{method_name}], "
            "which is reserved by Filter; use filter_method_map to rename it"
        )
