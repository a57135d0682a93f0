"""
Configuration defaults for filter instances.

``GlobalDefaults`` is an immutable snapshot of the feature flags, runtime
options and cache TTL every new filter starts from. It is read once, when a
filter is constructed. Pass one explicitly, or install one for the current
context at application start-up::

    set_global_defaults(
        GlobalDefaults.from_mapping(
            {
                "features": {"caching": True, "logging": True},
                "options": {"chunk_size": 500},
                "cache": {"ttl": 30},
            }
        )
    )
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .features import Feature

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_CACHE_TTL_MINUTES = 5


def _frozen(data: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class GlobalDefaults:
    """
    Immutable defaults applied to every filter at construction.

    Attributes:
        features: Feature name -> enabled. Unlisted features are off.
        options: Runtime options copied into each filter's option bag.
        cache_ttl: Cache expiration in minutes; ``None`` keeps the filter's
            own default.
    """

    features: Mapping[str, bool] = field(default_factory=lambda: _frozen(None))
    options: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))
    cache_ttl: int | None = None

    def __post_init__(self) -> None:
        # Validate names early and freeze caller-supplied dicts.
        features = {Feature.parse(k).value: bool(v) for k, v in self.features.items()}
        object.__setattr__(self, "features", _frozen(features))
        object.__setattr__(self, "options", _frozen(self.options))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> GlobalDefaults:
        """Build defaults from the nested ``features/options/cache.ttl`` shape."""
        data = data or {}
        cache = data.get("cache") or {}
        ttl = cache.get("ttl")
        return cls(
            features=data.get("features") or {},
            options=data.get("options") or {},
            cache_ttl=int(ttl) if ttl is not None else None,
        )

    def with_features(self, **flags: bool) -> GlobalDefaults:
        """Return a copy with the given features switched on or off.

        Example: ``defaults.with_features(caching=False, logging=True)``.
        """
        merged = dict(self.features)
        for name, enabled in flags.items():
            merged[Feature.parse(name).value] = enabled
        return replace(self, features=merged)

    def with_options(self, **options: Any) -> GlobalDefaults:
        """Return a copy with additional default options."""
        return replace(self, options={**self.options, **options})

    def with_cache_ttl(self, minutes: int | None) -> GlobalDefaults:
        return replace(self, cache_ttl=minutes)

    def to_dict(self) -> dict[str, Any]:
        """Serialise back to the nested configuration shape."""
        return {
            "features": dict(self.features),
            "options": dict(self.options),
            "cache": {"ttl": self.cache_ttl},
        }


_global_defaults_var: ContextVar[GlobalDefaults | None] = ContextVar(
    "filterable_global_defaults", default=None
)

_EMPTY_DEFAULTS = GlobalDefaults()


def get_global_defaults() -> GlobalDefaults:
    """Return the defaults installed for the current context."""
    defaults = _global_defaults_var.get()
    return defaults if defaults is not None else _EMPTY_DEFAULTS


def set_global_defaults(defaults: GlobalDefaults | None) -> None:
    """Install *defaults* for the current context (``None`` restores empty)."""
    _global_defaults_var.set(defaults)
