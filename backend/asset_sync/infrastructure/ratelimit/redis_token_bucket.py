# asset_sync/infrastructure/ratelimit/redis_token_bucket.py
from __future__ import annotations
import logging
from typing import Optional, Tuple

import redis

logger = logging.getLogger(__name__)


"""
Global token bucket (shared by every worker process / host), unit: rpm.
    key: {prefix}:{env}:{vendor}:{account}:v1

    acquire_once() runs atomically in Lua:
      1) refill using Redis server TIME (no host clock skew)
      2) tokens >= 1 -> consume one, allowed=1; otherwise return wait_ms
      3) persist tokens/ts with a TTL so idle buckets disappear
"""
class RedisTokenBucketLimiter:

    LUA_SCRIPT = """
    local key = KEYS[1]
    local capacity = tonumber(ARGV[1])
    local refill_per_ms = tonumber(ARGV[2])
    local ttl_ms = tonumber(ARGV[3])

    local t = redis.call('TIME')
    local now = tonumber(t[1]) * 1000 + math.floor(tonumber(t[2]) / 1000)

    local data = redis.call('HMGET', key, 'tokens', 'ts')
    local tokens = tonumber(data[1])
    local ts = tonumber(data[2])

    if tokens == nil or ts == nil then
        tokens = capacity
        ts = now
    else
        local delta = now - ts
        if delta < 0 then delta = 0 end
        tokens = math.min(capacity, tokens + delta * refill_per_ms)
        ts = now
    end

    local allowed = 0
    local wait_ms = 0
    if tokens >= 1 then
        tokens = tokens - 1
        allowed = 1
    else
        wait_ms = math.ceil((1 - tokens) / refill_per_ms)
        if wait_ms < 0 then wait_ms = 0 end
    end

    redis.call('HSET', key, 'tokens', tokens, 'ts', ts)
    if ttl_ms > 0 then
      redis.call('PEXPIRE', key, ttl_ms)
    end
    return {allowed, tokens, wait_ms}
    """


    def __init__(self, client, key: str, max_rpm: int, burst: int = 5,
                 ttl_ms: int = 120000, max_wait_ms: Optional[int] = 5000):
        self.r = client
        self.key = key
        self.capacity = max(1, int(burst))
        self.refill_per_ms = float(max_rpm) / 60_000.0
        self.ttl_ms = int(ttl_ms)
        self.max_wait_ms = max_wait_ms
        self._sha = self.r.script_load(self.LUA_SCRIPT)


    @classmethod
    def from_settings(cls, *, vendor: str, account: str | None) -> RedisTokenBucketLimiter | None:
        """Build from DAM_GLOBAL_RL_* settings; None when disabled or Redis is unreachable."""
        from asset_sync.core.config import settings

        if not settings.DAM_GLOBAL_RL_ENABLED:
            return None

        url = settings.DAM_GLOBAL_RATE_LIMIT_REDIS_URL
        if not url:
            logger.warning("Global RL disabled (no redis url).")
            return None

        acct = (account or "account").replace("://", "_").replace("/", "_").replace("@", "_at_")
        key = f"{settings.DAM_GLOBAL_RL_KEY_PREFIX}:{settings.DAM_ENV}:{vendor}:{acct}:v1"
        try:
            client = redis.from_url(url, decode_responses=True)
            return cls(
                client=client,
                key=key,
                max_rpm=settings.DAM_GLOBAL_RL_MAX_RPM,
                burst=settings.DAM_GLOBAL_RL_BURST,
                ttl_ms=120000,
                max_wait_ms=settings.DAM_GLOBAL_RL_MAX_WAIT_MS,
            )
        except redis.RedisError as e:
            logger.warning("Global RL disabled (redis error: %s).", e)
            return None


    def _eval(self) -> Tuple[bool, int]:
        """Run the script; reload once on NOSCRIPT (Redis restarted and lost its script cache)."""
        try:
            res = self.r.evalsha(self._sha, 1, self.key, self.capacity, self.refill_per_ms, self.ttl_ms)
        except redis.exceptions.NoScriptError:
            self._sha = self.r.script_load(self.LUA_SCRIPT)
            res = self.r.evalsha(self._sha, 1, self.key, self.capacity, self.refill_per_ms, self.ttl_ms)
        allowed = int(res[0]) == 1
        wait_ms = 0 if allowed else max(0, int(float(res[2])))
        if (self.max_wait_ms is not None) and (wait_ms > self.max_wait_ms):
            wait_ms = self.max_wait_ms
        return allowed, wait_ms


    """
        Try to take one token; returns (allowed, wait_ms).
        - allowed=True: send now
        - allowed=False: wait wait_ms then try again
    """
    def acquire_once(self) -> tuple[bool, int]:
        return self._eval()
