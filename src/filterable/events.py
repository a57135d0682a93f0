"""Filter lifecycle events and a synchronous dispatcher."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from .filter import Filter
    from .ports.query import IQuery

logger = logging.getLogger("filterable.events")


@dataclass(frozen=True)
class FilterEvent:
    filter: Filter
    query: IQuery


@dataclass(frozen=True)
class FilterApplying(FilterEvent):
    """Emitted when ``apply()`` starts, before any step runs."""

    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FilterApplied(FilterEvent):
    """Emitted after every enabled step ran successfully."""

    filters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FilterFailed(FilterEvent):
    """Emitted when a step raised; ``exception`` is the recorded failure."""

    exception: BaseException | None = None


E = TypeVar("E", bound=FilterEvent)


@runtime_checkable
class IFilterEventDispatcher(Protocol):
    def dispatch(self, event: FilterEvent) -> None: ...


class FilterEventDispatcher:
    """Runs registered handlers for each event type, in registration order.

    Handlers registered for :class:`FilterEvent` receive every event.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[FilterEvent], list[Callable[[Any], Any]]] = {}

    # ── Registration ─────────────────────────────────────────────

    def register(self, event_type: type[E], handler: Callable[[E], Any]) -> None:
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    # ── Dispatching ──────────────────────────────────────────────

    def dispatch(self, event: FilterEvent) -> None:
        for event_type in type(event).__mro__:
            for handler in self._handlers.get(event_type, []):  # type: ignore[arg-type]
                self._invoke(handler, event)

    def _invoke(self, handler: Callable[[Any], Any], event: FilterEvent) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception(
                "Error executing handler %s for event %s",
                getattr(handler, "__name__", type(handler).__name__),
                type(event).__name__,
            )
            raise

    # ── Introspection ────────────────────────────────────────────

    def get_registered_handlers(self) -> dict[type[FilterEvent], list[Callable[[Any], Any]]]:
        return {k: list(v) for k, v in self._handlers.items()}

    def clear(self) -> None:
        self._handlers.clear()
