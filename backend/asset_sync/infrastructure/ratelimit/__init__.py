"""
  Rate limit infrastructure.
     from asset_sync.infrastructure.ratelimit import RedisTokenBucketLimiter
"""
from .redis_token_bucket import RedisTokenBucketLimiter

__all__ = ["RedisTokenBucketLimiter"]
