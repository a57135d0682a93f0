from .cache import RedisCacheStore, RedisTaggedCache
from .rate_limiter import RedisRateLimitStore

__all__ = ["RedisCacheStore", "RedisRateLimitStore", "RedisTaggedCache"]
