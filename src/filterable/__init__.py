"""filterable — request-driven query filter orchestration."""

from .caching import SmartCache, build_cache_key, is_cache_worthy, sanitize_value
from .config import GlobalDefaults, get_global_defaults, set_global_defaults
from .events import (
    FilterApplied,
    FilterApplying,
    FilterEvent,
    FilterEventDispatcher,
    FilterFailed,
)
from .exceptions import (
    BadDispatchError,
    FeatureError,
    FeatureLockedError,
    FilterableError,
    FilterDefinitionError,
    FilterFailedError,
    FilterStateError,
    NotAppliedError,
    ReapplicationError,
    UnknownFeatureError,
    ValidationError,
)
from .features import Feature, FeatureSet
from .filter import Filter, FilterState
from .rate_limiting import RateLimitDecision, RateLimiter, complexity_score, throttle_key
from .resolver import DispatchTable, is_active, method_name_for, resolve_filterables
from .streaming import LazyResults, StreamingExecutor
from .transformation import transform_array
from .validation import ValidationResult

__all__ = [
    "BadDispatchError",
    "DispatchTable",
    "Feature",
    "FeatureError",
    "FeatureLockedError",
    "FeatureSet",
    "Filter",
    "FilterApplied",
    "FilterApplying",
    "FilterDefinitionError",
    "FilterEvent",
    "FilterEventDispatcher",
    "FilterFailed",
    "FilterFailedError",
    "FilterState",
    "FilterStateError",
    "FilterableError",
    "GlobalDefaults",
    "LazyResults",
    "NotAppliedError",
    "RateLimitDecision",
    "RateLimiter",
    "ReapplicationError",
    "SmartCache",
    "StreamingExecutor",
    "UnknownFeatureError",
    "ValidationError",
    "ValidationResult",
    "build_cache_key",
    "complexity_score",
    "get_global_defaults",
    "is_active",
    "is_cache_worthy",
    "method_name_for",
    "resolve_filterables",
    "sanitize_value",
    "set_global_defaults",
    "throttle_key",
    "transform_array",
]
