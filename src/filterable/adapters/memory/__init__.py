from .cache import InMemoryCacheStore, TaggedCache
from .input_source import MappingInputSource
from .operators import MemoryOperator, MemoryOperatorRegistry, build_default_registry
from .query import MemoryQuery
from .rate_limiter import InMemoryRateLimitStore

__all__ = [
    "InMemoryCacheStore",
    "InMemoryRateLimitStore",
    "MappingInputSource",
    "MemoryOperator",
    "MemoryOperatorRegistry",
    "MemoryQuery",
    "TaggedCache",
    "build_default_registry",
]
