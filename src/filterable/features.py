"""Feature registry: per-instance on/off switches for optional behaviours."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import FeatureLockedError, UnknownFeatureError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping


class Feature(str, Enum):
    """Optional behaviours a filter can compose."""

    VALIDATION = "validation"
    PERMISSIONS = "permissions"
    RATE_LIMIT = "rateLimit"
    CACHING = "caching"
    LOGGING = "logging"
    PERFORMANCE = "performance"
    OPTIMIZATION = "optimization"
    MEMORY_MANAGEMENT = "memoryManagement"
    FILTER_CHAINING = "filterChaining"
    VALUE_TRANSFORMATION = "valueTransformation"

    @classmethod
    def parse(cls, name: Feature | str) -> Feature:
        """Return the feature for *name*, accepting enum members or values."""
        if isinstance(name, Feature):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownFeatureError(
                f"Unknown feature {name!r}. "
                f"Valid features: {', '.join(f.value for f in cls)}"
            ) from None


class FeatureSet:
    """Mapping of :class:`Feature` to enabled state.

    Seeded from configuration defaults; every feature not mentioned is off.
    While locked (the owning filter is applying) any toggle raises
    :class:`FeatureLockedError`.
    """

    def __init__(self, defaults: Mapping[str, bool] | None = None) -> None:
        self._flags: dict[Feature, bool] = dict.fromkeys(Feature, False)
        self._locked = False
        for name, enabled in (defaults or {}).items():
            self._flags[Feature.parse(name)] = bool(enabled)

    # ── Queries ──────────────────────────────────────────────────

    def has(self, feature: Feature | str) -> bool:
        return self._flags[Feature.parse(feature)]

    def enabled(self) -> list[Feature]:
        """Enabled features in declaration order."""
        return [feature for feature, on in self._flags.items() if on]

    def as_dict(self) -> dict[str, bool]:
        """Enabled features keyed by their configuration name."""
        return {feature.value: True for feature in self.enabled()}

    def __contains__(self, feature: object) -> bool:
        if not isinstance(feature, Feature | str):
            return False
        try:
            return self.has(feature)
        except UnknownFeatureError:
            return False

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.enabled())

    # ── Toggles ──────────────────────────────────────────────────

    def enable(self, *features: Feature | str) -> None:
        self._set(features, True)

    def disable(self, *features: Feature | str) -> None:
        self._set(features, False)

    def _set(self, features: Iterable[Feature | str], value: bool) -> None:
        parsed = [Feature.parse(f) for f in features]
        if self._locked:
            raise FeatureLockedError(
                "Features cannot be toggled while filters are being applied"
            )
        for feature in parsed:
            self._flags[feature] = value

    # ── Locking ──────────────────────────────────────────────────

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def __repr__(self) -> str:
        names = ", ".join(f.value for f in self.enabled())
        return f"FeatureSet({names})"
