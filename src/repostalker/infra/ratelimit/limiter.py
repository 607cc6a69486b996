"""Multi-window rate limiter guarding the shared LLM budget.

Every LLM-backed request is counted against three bucketed windows:

* per client, per minute
* global, per hour
* global, per day

A window's bucket id is ``floor(now_ms / window_ms)``, so all requests in
the same minute (hour, day) share one counter, and the counter expires
one full window after its bucket closes.  A request is admitted only if
*all* windows have room; a rejected request increments nothing.

The ``enforce_rate_limit`` dependency performs the check as a side
effect. Endpoints declare it and never touch limiter logic directly.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from redis.asyncio import Redis

from repostalker.configs.config import AppConfig, get_app_config
from repostalker.configs.system import RateLimitConfig
from repostalker.infra.lifespan import get_app
from repostalker.infra.redis import build_redis
from repostalker.infra.telemetry import (
    ATTR_RATE_LIMIT_ALLOWED,
    ATTR_RATE_LIMIT_SCOPE,
    SPAN_RATE_LIMIT_CHECK,
    tracer,
)

from .base import (
    SCOPE_CLIENT,
    SCOPE_DAY,
    SCOPE_HOUR,
    CounterBackend,
    CounterWindow,
    RateLimited,
)
from .local_backend import LocalCounterBackend
from .real_ip import get_client_key
from .redis_backend import RedisCounterBackend

logger = logging.getLogger(__name__)

_KEY_CLIENT = "repostalker:ratelimit:ip:{client}:{bucket}"
_KEY_HOUR = "repostalker:ratelimit:global:hour:{bucket}"
_KEY_DAY = "repostalker:ratelimit:global:day:{bucket}"

MINUTE_MS = 60_000
HOUR_MS = 3_600_000
DAY_MS = 86_400_000

# Buckets outlive their window by one more window length.
_EXPIRY_FACTOR = 2

_REASONS = {
    SCOPE_CLIENT: (
        "Rate limit exceeded. Maximum {ceiling} requests per minute allowed. "
        "Please try again later."
    ),
    SCOPE_HOUR: (
        "Global rate limit exceeded. The service has reached its hourly "
        "capacity of {ceiling} requests. Please try again in a few minutes."
    ),
    SCOPE_DAY: (
        "Daily rate limit exceeded. The service has reached its daily "
        "capacity of {ceiling} requests. Please try again tomorrow."
    ),
}


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of ``RateLimiter.check_and_admit``."""

    allowed: bool
    reason: str | None = None
    scope: str | None = None


class RateLimiter:
    """Bucketed three-window limiter over a ``CounterBackend``."""

    def __init__(
        self,
        backend: CounterBackend,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._config = config
        self._clock = clock

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    # -----------------------------------------------------------------
    # Windows
    # -----------------------------------------------------------------

    def _windows(self, client_key: str, now_ms: int) -> list[CounterWindow]:
        """Build the enabled windows in evaluation order."""
        cfg = self._config
        specs = [
            (
                SCOPE_CLIENT,
                cfg.per_client_per_minute,
                MINUTE_MS,
                _KEY_CLIENT.format(client=client_key, bucket=now_ms // MINUTE_MS),
            ),
            (
                SCOPE_HOUR,
                cfg.global_per_hour,
                HOUR_MS,
                _KEY_HOUR.format(bucket=now_ms // HOUR_MS),
            ),
            (
                SCOPE_DAY,
                cfg.global_per_day,
                DAY_MS,
                _KEY_DAY.format(bucket=now_ms // DAY_MS),
            ),
        ]
        return [
            CounterWindow(
                scope=scope,
                key=key,
                ceiling=ceiling,
                ttl_ms=window_ms * _EXPIRY_FACTOR,
            )
            for scope, ceiling, window_ms, key in specs
            if ceiling > 0
        ]

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    async def check_and_admit(self, client_key: str) -> RateLimitDecision:
        """Admit the request or explain which window rejected it.

        Raises:
            RateLimiterUnavailable: the counter store is unreachable.
        """
        windows = self._windows(client_key, self._now_ms())
        with tracer.start_as_current_span(SPAN_RATE_LIMIT_CHECK) as span:
            rejected = await self._backend.check_and_increment(windows)
            if rejected is None:
                span.set_attribute(ATTR_RATE_LIMIT_ALLOWED, True)
                logger.debug("Rate limit check passed for client %s", client_key)
                return RateLimitDecision(allowed=True)

            window = windows[rejected]
            span.set_attribute(ATTR_RATE_LIMIT_ALLOWED, False)
            span.set_attribute(ATTR_RATE_LIMIT_SCOPE, window.scope)
            logger.info(
                "Rate limit exceeded (scope=%s, ceiling=%d, client=%s)",
                window.scope,
                window.ceiling,
                client_key,
            )
            return RateLimitDecision(
                allowed=False,
                reason=_REASONS[window.scope].format(ceiling=window.ceiling),
                scope=window.scope,
            )

    async def enforce(self, client_key: str) -> None:
        """Like ``check_and_admit`` but raises ``RateLimited`` on rejection."""
        decision = await self.check_and_admit(client_key)
        if not decision.allowed:
            raise RateLimited(
                decision.reason or "Rate limit exceeded.",
                scope=decision.scope or SCOPE_CLIENT,
            )

    async def usage(self, client_key: str | None = None) -> dict[str, Any]:
        """Current counts in the active buckets plus the configured limits."""
        now_ms = self._now_ms()
        keys = [
            _KEY_HOUR.format(bucket=now_ms // HOUR_MS),
            _KEY_DAY.format(bucket=now_ms // DAY_MS),
        ]
        if client_key is not None:
            keys.append(
                _KEY_CLIENT.format(client=client_key, bucket=now_ms // MINUTE_MS)
            )
        counts = await self._backend.get_counts(keys)
        stats: dict[str, Any] = {
            "hourly_usage": counts[0],
            "daily_usage": counts[1],
            "limits": self._config.model_dump(),
        }
        if client_key is not None:
            stats["client_usage"] = counts[2]
        return stats

    async def aclose(self) -> None:
        await self._backend.aclose()


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


def _build_backend(redis_client: Redis | None) -> CounterBackend:
    if redis_client is not None:
        return RedisCounterBackend(redis_client)
    return LocalCounterBackend()


async def build_rate_limiter(
    app: Annotated[FastAPI, Depends(get_app)],
    redis_client: Annotated[Redis | None, Depends(build_redis)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create a ``RateLimiter``, attach to ``app.state``; close on shutdown."""
    backend = "Redis" if redis_client is not None else "local"
    limiter = RateLimiter(_build_backend(redis_client), config.rate_limit)
    app.state.rate_limiter = limiter
    logger.info(
        "RateLimiter: %s backend (per_client=%d/min, global=%d/h, %d/day)",
        backend,
        config.rate_limit.per_client_per_minute,
        config.rate_limit.global_per_hour,
        config.rate_limit.global_per_day,
    )
    yield
    await limiter.aclose()


# ---------------------------------------------------------------------------
# Per-request dependencies
# ---------------------------------------------------------------------------


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the ``RateLimiter`` stored on ``app.state`` by the lifespan."""
    return request.app.state.rate_limiter


async def enforce_rate_limit(
    client_key: Annotated[str, Depends(get_client_key)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """Side-effect dependency: count the request or reject it.

    Raises ``RateLimited`` or ``RateLimiterUnavailable``; the exception
    handlers in ``api/exceptions.py`` convert these to HTTP responses.
    """
    await limiter.enforce(client_key)
