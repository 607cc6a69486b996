"""Rate limiting for LLM-backed endpoints.

One limiter, three bucketed windows (per-client/minute, global/hour,
global/day), checked and incremented atomically.

Two counter stores are provided:

* Redis: distributed, one Lua script per check so a request either
  increments every window or none.  Keys carry a TTL of twice their
  window, so stale buckets expire without a sweep.
* Local: in-process, serialized by an ``asyncio.Lock``.  Used
  automatically when Redis is unavailable at startup.

If the store fails *during* a check the limiter fails closed with
``RateLimiterUnavailable``.
"""

from .base import (
    SCOPE_CLIENT,
    SCOPE_DAY,
    SCOPE_HOUR,
    CounterBackend,
    CounterWindow,
    RateLimited,
    RateLimiterUnavailable,
)
from .limiter import (
    RateLimitDecision,
    RateLimiter,
    build_rate_limiter,
    enforce_rate_limit,
    get_rate_limiter,
)
from .local_backend import LocalCounterBackend
from .real_ip import UNKNOWN_CLIENT, get_client_key
from .redis_backend import RedisCounterBackend

__all__ = [
    "SCOPE_CLIENT",
    "SCOPE_DAY",
    "SCOPE_HOUR",
    "UNKNOWN_CLIENT",
    "CounterBackend",
    "CounterWindow",
    "LocalCounterBackend",
    "RateLimitDecision",
    "RateLimited",
    "RateLimiter",
    "RateLimiterUnavailable",
    "RedisCounterBackend",
    "build_rate_limiter",
    "enforce_rate_limit",
    "get_client_key",
    "get_rate_limiter",
]
