"""
Filterable resolution and predicate dispatch.

Resolution turns raw request input into the *active filterables* of a
filter: the declared keys that carry a meaningful value, overlaid with any
values appended programmatically. Dispatch maps every active key to the
predicate method that narrows the query for it.

Inactive values are ``None``, ``""``, ``False`` and empty collections.
``0``, ``0.0`` and ``"0"`` are meaningful and stay active.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Mapping, Set
from typing import TYPE_CHECKING, Any

from .exceptions import BadDispatchError

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable

    from .ports.input_source import IInputSource

_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

COLLECTION_TYPES: tuple[type, ...] = (list, tuple, Set, Mapping)


def is_collection(value: Any) -> bool:
    """Whether *value* counts as a collection (strings and bytes do not)."""
    return isinstance(value, COLLECTION_TYPES)


def is_active(value: Any) -> bool:
    """Whether *value* should trigger its predicate."""
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if is_collection(value):
        return len(value) > 0
    return True


def method_name_for(key: str) -> str:
    """Convert an input key to its predicate method name.

    ``"status"`` → ``"status"``, ``"createdAt"`` → ``"created_at"``,
    ``"price-range"`` → ``"price_range"``.
    """
    name = _CAMEL_BOUNDARY.sub("_", key)
    name = _NON_IDENTIFIER.sub("_", name).strip("_").lower()
    return name


def filter_keys(declared: Iterable[str], method_map_keys: Iterable[str]) -> list[str]:
    """Union of declared keys and override-map keys, first occurrence wins."""
    return list(dict.fromkeys([*declared, *method_map_keys]))


def resolve_filterables(
    source: IInputSource | None,
    declared: Iterable[str],
    method_map_keys: Iterable[str] = (),
    appended: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Return the active filterables for one request.

    Args:
        source: Request input; ``None`` resolves to the appended values only.
        declared: Keys the filter declares.
        method_map_keys: Keys of the filter's method override map.
        appended: Values set programmatically; they take precedence over
            request input.
    """
    keys = filter_keys(declared, method_map_keys)
    raw: dict[str, Any] = dict(source.only(keys)) if source is not None and keys else {}
    raw.update(appended or {})
    return {key: value for key, value in raw.items() if is_active(value)}


class DispatchTable:
    """Key → bound predicate method, built once per filter instance.

    Keys known at construction are bound eagerly. Keys appended later are
    bound on first use and remembered.

    Methods are looked up on the owner's class, so instance attributes
    never hide a predicate of the same name. Names in *reserved* are never
    bound.
    """

    __slots__ = ("_bound", "_method_map", "_names", "_owner", "_reserved")

    def __init__(
        self,
        owner: object,
        keys: Iterable[str],
        method_map: Mapping[str, str] | None = None,
        reserved: Collection[str] = (),
    ) -> None:
        self._owner = owner
        self._method_map = dict(method_map or {})
        self._reserved = frozenset(reserved)
        self._names: dict[str, str] = {}
        self._bound: dict[str, Callable[[Any], Any] | None] = {}
        for key in keys:
            self._bind(key)

    def _bind(self, key: str) -> None:
        name = self._method_map.get(key) or method_name_for(key)
        self._names[key] = name
        self._bound[key] = None
        if not name.isidentifier() or name in self._reserved:
            return
        owner_type = type(self._owner)
        attribute = inspect.getattr_static(owner_type, name, None)
        if attribute is None or isinstance(attribute, property):
            return
        candidate = (
            attribute.__get__(self._owner, owner_type)
            if hasattr(attribute, "__get__")
            else attribute
        )
        if callable(candidate):
            self._bound[key] = candidate

    def method_name(self, key: str) -> str:
        if key not in self._names:
            self._bind(key)
        return self._names[key]

    def resolve(self, key: str) -> Callable[[Any], Any]:
        """Return the predicate for *key* or raise :class:`BadDispatchError`."""
        if key not in self._bound:
            self._bind(key)
        predicate = self._bound[key]
        if predicate is None:
            raise BadDispatchError(
                self._names[key], type(self._owner).__name__, key=key
            )
        return predicate

    def dispatch(self, filterables: Mapping[str, Any]) -> None:
        """Invoke the predicate of every active filterable with its value."""
        for key, value in filterables.items():
            self.resolve(key)(value)

    def __contains__(self, key: object) -> bool:
        return key in self._bound and self._bound[key] is not None
