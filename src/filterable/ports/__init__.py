from .cache import ICacheStore, ITaggableCacheStore, ITaggedCacheStore
from .input_source import IInputSource
from .principal import IPrincipal
from .query import MISSING, IQuery, Predicate, QueryShape, normalize_where
from .rate_limit import IRateLimitStore

__all__ = [
    "MISSING",
    "ICacheStore",
    "IInputSource",
    "IPrincipal",
    "IQuery",
    "IRateLimitStore",
    "ITaggableCacheStore",
    "ITaggedCacheStore",
    "Predicate",
    "QueryShape",
    "normalize_where",
]
