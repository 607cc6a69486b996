"""Tests for the multi-window rate limiter, its stores and client keys."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import NoScriptError

from repostalker.configs.system import RateLimitConfig
from repostalker.infra.ratelimit import (
    SCOPE_CLIENT,
    SCOPE_DAY,
    SCOPE_HOUR,
    UNKNOWN_CLIENT,
    CounterWindow,
    LocalCounterBackend,
    RateLimited,
    RateLimiter,
    RateLimiterUnavailable,
    RedisCounterBackend,
    get_client_key,
)

# =========================================================================
# Helpers
# =========================================================================


class _Clock:
    """Settable stand-in for ``time.time``."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_limiter(
    clock: _Clock,
    *,
    per_client: int = 10,
    per_hour: int = 50,
    per_day: int = 2000,
) -> RateLimiter:
    config = RateLimitConfig(
        per_client_per_minute=per_client,
        global_per_hour=per_hour,
        global_per_day=per_day,
    )
    return RateLimiter(LocalCounterBackend(clock=clock), config, clock=clock)


class _FakeRequest:
    """Minimal stand-in for ``fastapi.Request``."""

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {}


# =========================================================================
# Client key extraction
# =========================================================================


class TestGetClientKey:
    def test_forwarded_for_leftmost(self):
        req = _FakeRequest(
            headers={"x-forwarded-for": " 9.10.11.12 , 1.1.1.1", "x-real-ip": "5.6.7.8"}
        )
        assert get_client_key(req) == "9.10.11.12"

    def test_real_ip_fallback(self):
        req = _FakeRequest(headers={"x-real-ip": "5.6.7.8"})
        assert get_client_key(req) == "5.6.7.8"

    def test_empty_forwarded_for_falls_through(self):
        req = _FakeRequest(headers={"x-forwarded-for": " ,", "x-real-ip": "5.6.7.8"})
        assert get_client_key(req) == "5.6.7.8"

    def test_no_headers_share_unknown_bucket(self):
        assert get_client_key(_FakeRequest()) == UNKNOWN_CLIENT


# =========================================================================
# Windows
# =========================================================================


class TestWindows:
    def test_bucket_ids_and_expiry(self):
        clock = _Clock(now=3_600.5)
        limiter = _make_limiter(clock)
        windows = limiter._windows("1.2.3.4", int(clock() * 1000))

        assert [w.scope for w in windows] == [SCOPE_CLIENT, SCOPE_HOUR, SCOPE_DAY]
        assert windows[0].key == "repostalker:ratelimit:ip:1.2.3.4:60"
        assert windows[1].key == "repostalker:ratelimit:global:hour:1"
        assert windows[2].key == "repostalker:ratelimit:global:day:0"
        assert [w.ttl_ms for w in windows] == [120_000, 7_200_000, 172_800_000]

    def test_zero_ceiling_disables_window(self):
        limiter = _make_limiter(_Clock(), per_client=0, per_day=0)
        windows = limiter._windows("1.2.3.4", 0)
        assert [w.scope for w in windows] == [SCOPE_HOUR]


# =========================================================================
# Admission
# =========================================================================


class TestRateLimiterAdmission:
    @pytest.mark.asyncio
    async def test_rejects_after_per_client_ceiling(self):
        limiter = _make_limiter(_Clock(), per_client=3)
        for _ in range(3):
            assert (await limiter.check_and_admit("1.2.3.4")).allowed

        decision = await limiter.check_and_admit("1.2.3.4")
        assert not decision.allowed
        assert decision.scope == SCOPE_CLIENT
        assert decision.reason == (
            "Rate limit exceeded. Maximum 3 requests per minute allowed. "
            "Please try again later."
        )

    @pytest.mark.asyncio
    async def test_rejection_increments_nothing(self):
        clock = _Clock()
        limiter = _make_limiter(clock, per_client=1, per_hour=3)
        assert (await limiter.check_and_admit("a")).allowed
        for _ in range(5):
            assert not (await limiter.check_and_admit("a")).allowed

        usage = await limiter.usage("a")
        assert usage["client_usage"] == 1
        assert usage["hourly_usage"] == 1
        assert usage["daily_usage"] == 1

        # The rejected attempts left the hourly budget untouched.
        assert (await limiter.check_and_admit("b")).allowed
        assert (await limiter.check_and_admit("c")).allowed
        decision = await limiter.check_and_admit("d")
        assert decision.scope == SCOPE_HOUR

    @pytest.mark.asyncio
    async def test_bucket_resets_at_window_boundary(self):
        clock = _Clock(now=1_200.0)  # start of a minute bucket
        limiter = _make_limiter(clock, per_client=1)
        assert (await limiter.check_and_admit("a")).allowed
        clock.advance(59)
        assert not (await limiter.check_and_admit("a")).allowed
        clock.advance(1)
        assert (await limiter.check_and_admit("a")).allowed

    @pytest.mark.asyncio
    async def test_clients_are_independent(self):
        limiter = _make_limiter(_Clock(), per_client=1)
        assert (await limiter.check_and_admit("1.1.1.1")).allowed
        assert (await limiter.check_and_admit("2.2.2.2")).allowed
        assert not (await limiter.check_and_admit("1.1.1.1")).allowed

    @pytest.mark.asyncio
    async def test_hourly_message(self):
        limiter = _make_limiter(_Clock(), per_hour=2)
        await limiter.check_and_admit("a")
        await limiter.check_and_admit("b")
        decision = await limiter.check_and_admit("c")
        assert decision.scope == SCOPE_HOUR
        assert decision.reason == (
            "Global rate limit exceeded. The service has reached its hourly "
            "capacity of 2 requests. Please try again in a few minutes."
        )

    @pytest.mark.asyncio
    async def test_daily_message(self):
        limiter = _make_limiter(_Clock(), per_hour=0, per_day=1)
        await limiter.check_and_admit("a")
        decision = await limiter.check_and_admit("b")
        assert decision.scope == SCOPE_DAY
        assert decision.reason == (
            "Daily rate limit exceeded. The service has reached its daily "
            "capacity of 1 requests. Please try again tomorrow."
        )

    @pytest.mark.asyncio
    async def test_client_reason_wins_when_several_exceeded(self):
        limiter = _make_limiter(_Clock(), per_client=1, per_hour=1, per_day=1)
        await limiter.check_and_admit("a")
        decision = await limiter.check_and_admit("a")
        assert decision.scope == SCOPE_CLIENT

    @pytest.mark.asyncio
    async def test_all_disabled_admits_everything(self):
        limiter = _make_limiter(_Clock(), per_client=0, per_hour=0, per_day=0)
        for _ in range(100):
            assert (await limiter.check_and_admit("a")).allowed

    @pytest.mark.asyncio
    async def test_concurrent_requests_never_exceed_ceiling(self):
        limiter = _make_limiter(_Clock(), per_client=10)
        decisions = await asyncio.gather(
            *(limiter.check_and_admit("1.2.3.4") for _ in range(25))
        )
        assert sum(d.allowed for d in decisions) == 10

    @pytest.mark.asyncio
    async def test_enforce_raises_with_scope(self):
        limiter = _make_limiter(_Clock(), per_client=1)
        await limiter.enforce("a")
        with pytest.raises(RateLimited, match="Maximum 1 requests") as exc_info:
            await limiter.enforce("a")
        assert exc_info.value.scope == SCOPE_CLIENT


# =========================================================================
# Local store expiry
# =========================================================================


class TestLocalCounterBackend:
    @pytest.mark.asyncio
    async def test_counter_expires_after_ttl(self):
        clock = _Clock(now=0.0)
        backend = LocalCounterBackend(clock=clock)
        window = CounterWindow(scope=SCOPE_CLIENT, key="k", ceiling=5, ttl_ms=2_000)

        assert await backend.check_and_increment([window]) is None
        assert await backend.get_counts(["k"]) == [1]
        clock.advance(1.9)
        assert await backend.get_counts(["k"]) == [1]
        clock.advance(0.2)
        assert await backend.get_counts(["k"]) == [0]

    @pytest.mark.asyncio
    async def test_returns_first_rejecting_index(self):
        backend = LocalCounterBackend(clock=_Clock())
        windows = [
            CounterWindow(scope=SCOPE_CLIENT, key="a", ceiling=5, ttl_ms=1_000),
            CounterWindow(scope=SCOPE_HOUR, key="b", ceiling=0, ttl_ms=1_000),
            CounterWindow(scope=SCOPE_DAY, key="c", ceiling=0, ttl_ms=1_000),
        ]
        assert await backend.check_and_increment(windows) == 1
        assert await backend.get_counts(["a", "b", "c"]) == [0, 0, 0]


# =========================================================================
# Redis store
# =========================================================================


def _fake_redis() -> MagicMock:
    redis = MagicMock()
    redis.script_load = AsyncMock(return_value="sha-1")
    redis.evalsha = AsyncMock(return_value=0)
    redis.mget = AsyncMock(return_value=["3", None])
    return redis


class TestRedisCounterBackend:
    @pytest.mark.asyncio
    async def test_passes_keys_ceilings_and_ttls(self):
        redis = _fake_redis()
        backend = RedisCounterBackend(redis)
        windows = [
            CounterWindow(scope=SCOPE_CLIENT, key="k1", ceiling=10, ttl_ms=120_000),
            CounterWindow(scope=SCOPE_HOUR, key="k2", ceiling=50, ttl_ms=7_200_000),
        ]
        assert await backend.check_and_increment(windows) is None
        redis.evalsha.assert_awaited_once_with(
            "sha-1", 2, "k1", "k2", "10", "120000", "50", "7200000"
        )

    @pytest.mark.asyncio
    async def test_script_index_maps_to_window_index(self):
        redis = _fake_redis()
        redis.evalsha.return_value = 2
        backend = RedisCounterBackend(redis)
        windows = [
            CounterWindow(scope=SCOPE_CLIENT, key="k1", ceiling=10, ttl_ms=1),
            CounterWindow(scope=SCOPE_HOUR, key="k2", ceiling=50, ttl_ms=1),
        ]
        assert await backend.check_and_increment(windows) == 1

    @pytest.mark.asyncio
    async def test_script_loaded_once(self):
        redis = _fake_redis()
        backend = RedisCounterBackend(redis)
        window = CounterWindow(scope=SCOPE_CLIENT, key="k", ceiling=1, ttl_ms=1)
        await backend.check_and_increment([window])
        await backend.check_and_increment([window])
        redis.script_load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_flushed_script_cache_is_reloaded(self):
        redis = _fake_redis()
        redis.script_load.side_effect = ["sha-1", "sha-2", "sha-3"]
        backend = RedisCounterBackend(redis)
        limiter = RateLimiter(backend, RateLimitConfig())
        assert (await limiter.check_and_admit("a")).allowed

        redis.evalsha.side_effect = [
            NoScriptError("No matching script. Please use EVAL."),
            0,
            0,
        ]
        assert (await limiter.check_and_admit("a")).allowed
        assert (await limiter.check_and_admit("a")).allowed

        assert redis.script_load.await_count == 2
        assert redis.evalsha.await_args_list[-1].args[0] == "sha-2"

    @pytest.mark.asyncio
    async def test_script_reload_failure_fails_closed(self):
        redis = _fake_redis()
        redis.evalsha.side_effect = NoScriptError("No matching script.")
        backend = RedisCounterBackend(redis)
        window = CounterWindow(scope=SCOPE_CLIENT, key="k", ceiling=1, ttl_ms=1)

        with pytest.raises(RateLimiterUnavailable):
            await backend.check_and_increment([window])
        assert redis.evalsha.await_count == 2

    @pytest.mark.asyncio
    async def test_store_failure_fails_closed(self):
        redis = _fake_redis()
        redis.evalsha.side_effect = RedisConnectionError("connection refused")
        limiter = RateLimiter(RedisCounterBackend(redis), RateLimitConfig())

        with pytest.raises(RateLimiterUnavailable, match="temporarily unavailable"):
            await limiter.check_and_admit("1.2.3.4")

    @pytest.mark.asyncio
    async def test_get_counts_treats_missing_as_zero(self):
        backend = RedisCounterBackend(_fake_redis())
        assert await backend.get_counts(["a", "b"]) == [3, 0]
