"""
Cache key derivation and the smart-caching heuristic.

Keys are deterministic and independent of input order::

    filters:PostFilter:42:3b1f...e9   # principal 42
    filters:PostFilter:global:3b1f...e9

Queries that are cheap to run (a single simple comparison, no joins) are
executed directly; everything else is read through the cache store.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
from collections.abc import Mapping, Set
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from .resolver import is_collection

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .ports.cache import ICacheStore
    from .ports.query import IQuery, QueryShape

logger = logging.getLogger("filterable.caching")

SIMPLE_OPERATORS: frozenset[str] = frozenset({"=", ">", "<", ">=", "<="})
COUNT_SUFFIX = ":count"


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _canonical(value: Any) -> Any:
    """Reduce *value* to JSON-compatible data with a stable ordering."""
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, Set):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    if isinstance(value, list | tuple):
        return [_canonical(v) for v in value]
    if value is None or isinstance(value, str | int | float | bool):
        return value
    return _stable_serialization(value)


def _stable_serialization(value: Any) -> str:
    if hasattr(value, "model_dump_json"):
        return str(value.model_dump_json())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return json.dumps(
            dataclasses.asdict(value), sort_keys=True, default=repr
        )
    return repr(value)


def sanitize_value(value: Any) -> str:
    """Render one filter value as a short, stable string.

    Collections are hashed in a canonical form: mapping keys and set
    members are sorted, while lists and tuples keep their element order.
    ``["a", "b"]`` and ``["b", "a"]`` therefore give different keys; pass a
    set when order carries no meaning.
    """
    if is_collection(value):
        encoded = json.dumps(_canonical(value), sort_keys=True, separators=(",", ":"))
        return _sha256(encoded)
    if isinstance(value, str | int | float | bool):
        return str(value)
    return _sha256(_stable_serialization(value))


def build_cache_key(
    prefix: str, principal_id: Any | None, filterables: Mapping[str, Any]
) -> str:
    """Return ``"{prefix}:{principal or 'global'}:{digest}"``."""
    pairs = sorted((key, sanitize_value(value)) for key, value in filterables.items())
    digest = _sha256(urlencode(pairs))
    scope = "global" if principal_id is None else str(principal_id)
    return f"{prefix}:{scope}:{digest}"


def is_cache_worthy(shape: QueryShape) -> bool:
    """Whether a query is expensive enough to go through the cache.

    A single predicate using a simple comparison and no joins is executed
    directly; every other shape is cached.
    """
    if shape.joins:
        return True
    if len(shape.predicates) != 1:
        return True
    return shape.predicates[0].operator not in SIMPLE_OPERATORS


class SmartCache:
    """Result and count caching for one filter instance.

    Parameters
    ----------
    store:
        Cache store; when ``None`` every read executes directly.
    expiration:
        Result TTL in minutes.
    """

    def __init__(self, store: ICacheStore | None = None, expiration: int = 5) -> None:
        self.store = store
        self.expiration = expiration
        self.count_expiration: int | None = None
        self.force = False
        self.count_enabled = False
        self.tags: list[str] = []

    # ── Configuration ────────────────────────────────────────────

    @property
    def ttl_seconds(self) -> int:
        return int(self.expiration * 60)

    @property
    def count_ttl_seconds(self) -> int:
        minutes = self.count_expiration if self.count_expiration is not None else self.expiration
        return int(minutes * 60)

    def set_tags(self, tags: Sequence[str]) -> None:
        self.tags = list(dict.fromkeys([*self.tags, *tags]))

    def _target(self) -> ICacheStore | None:
        if self.store is None:
            return None
        if self.tags and hasattr(self.store, "tags"):
            return self.store.tags(self.tags)  # type: ignore[no-any-return]
        return self.store

    # ── Reads ────────────────────────────────────────────────────

    def fetch(self, key: str, query: IQuery) -> list[Any]:
        """Return ``query.get()``, through the cache when worthwhile."""
        target = self._target()
        if target is None:
            return query.get()
        if not self.force and not is_cache_worthy(query.describe()):
            logger.debug("Skipping cache for simple query %s", key)
            return query.get()
        return list(target.remember(key, self.ttl_seconds, query.get))

    def count(self, key: str, query: IQuery) -> int:
        """Return ``query.count()``, cached under ``key + ':count'`` if enabled."""
        target = self._target()
        if target is None or not self.count_enabled:
            return query.count()
        return int(target.remember(key + COUNT_SUFFIX, self.count_ttl_seconds, query.count))

    # ── Invalidation ─────────────────────────────────────────────

    def clear(self, key: str) -> None:
        target = self._target()
        if target is None:
            return
        target.forget(key)
        target.forget(key + COUNT_SUFFIX)

    def clear_related(self) -> None:
        """Flush every entry written under the current tags."""
        if self.store is None or not self.tags or not hasattr(self.store, "tags"):
            return
        self.store.tags(self.tags).flush()

