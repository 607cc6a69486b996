"""Distributed counter store backed by a Redis Lua script."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError

from .base import CounterBackend, CounterWindow, RateLimiterUnavailable

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lua script
# ---------------------------------------------------------------------------

# Check every window, then increment all of them -- or none.
# KEYS[i] = counter key for window i.
# ARGV[2i-1] = ceiling for window i, ARGV[2i] = TTL in milliseconds.
# Returns 0 when admitted, otherwise the 1-based index of the first
# window that would exceed its ceiling.
_LUA_CHECK_AND_INCR = """
for i, key in ipairs(KEYS) do
    local ceiling = tonumber(ARGV[2 * i - 1])
    local cur = tonumber(redis.call('GET', key) or '0')
    if cur + 1 > ceiling then
        return i
    end
end
for i, key in ipairs(KEYS) do
    redis.call('INCR', key)
    redis.call('PEXPIRE', key, tonumber(ARGV[2 * i]))
end
return 0
"""


class RedisCounterBackend(CounterBackend):
    """Counters shared by every worker, admitted atomically in one script."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis
        self._check_sha: str | None = None

    async def _ensure_scripts(self) -> None:
        if self._check_sha is None:
            self._check_sha = await self._redis.script_load(_LUA_CHECK_AND_INCR)

    async def _evalsha(self, keys: list[str], args: list[str]) -> int:
        await self._ensure_scripts()
        return await self._redis.evalsha(
            self._check_sha,  # type: ignore[arg-type]
            len(keys),
            *keys,
            *args,
        )

    async def _run_check(self, keys: list[str], args: list[str]) -> int:
        try:
            return await self._evalsha(keys, args)
        except NoScriptError:
            # Script cache was flushed (restart, failover, SCRIPT FLUSH).
            logger.warning("Rate-limit script missing from Redis, reloading")
            self._check_sha = None
            return await self._evalsha(keys, args)

    async def check_and_increment(
        self, windows: Sequence[CounterWindow]
    ) -> int | None:
        if not windows:
            return None
        keys = [w.key for w in windows]
        args: list[str] = []
        for w in windows:
            args.extend((str(w.ceiling), str(w.ttl_ms)))
        try:
            result = await self._run_check(keys, args)
        except RedisError as exc:
            logger.error("Rate-limit store unreachable: %s", exc)
            raise RateLimiterUnavailable(
                "Rate limiting is temporarily unavailable. Please try again later."
            ) from exc
        rejected = int(result)
        return None if rejected == 0 else rejected - 1

    async def get_counts(self, keys: Sequence[str]) -> list[int]:
        if not keys:
            return []
        try:
            values = await self._redis.mget(list(keys))
        except RedisError as exc:
            raise RateLimiterUnavailable(
                "Rate limiting is temporarily unavailable. Please try again later."
            ) from exc
        return [int(v) if v is not None else 0 for v in values]

    async def aclose(self) -> None:
        # Redis client lifecycle is managed externally (infra/redis.py).
        pass
