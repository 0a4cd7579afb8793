"""Unit tests for OriginRateLimiter.

The limiter takes its clock and sleep as parameters, so these tests run on
virtual time.
"""

import asyncio
import random

import pytest

pytest_plugins = ('pytest_asyncio',)

from harvester.infrastructure.rate_limiter import (
    ASSET_RATE_LIMIT,
    OriginRateLimiter,
    RateLimitConfig,
)

ORIGIN = "https://acme.example"


class FakeClock:
    """Virtual clock whose sleep advances time and yields to the loop."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []
        self.events = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.events.append("start")
        self.sleeps.append(seconds)
        await asyncio.sleep(0)
        self.now += seconds
        self.events.append("end")


def make_limiter(clock, min_delay_ms=2000, max_delay_ms=2000, max_requests_per_minute=30):
    config = RateLimitConfig(
        min_delay_ms=min_delay_ms,
        max_delay_ms=max_delay_ms,
        max_requests_per_minute=max_requests_per_minute,
    )
    return OriginRateLimiter(config, clock=clock, sleep=clock.sleep, rng=random.Random(7))


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_default_config(self):
        """Test default politeness budget."""
        config = RateLimitConfig()

        assert config.min_delay_ms == 2000
        assert config.max_delay_ms == 5000
        assert config.max_requests_per_minute == 30

    def test_asset_config_is_lighter(self):
        """Test the asset budget allows faster, denser requests."""
        assert ASSET_RATE_LIMIT.max_delay_ms < RateLimitConfig().min_delay_ms
        assert ASSET_RATE_LIMIT.max_requests_per_minute > RateLimitConfig().max_requests_per_minute


class TestOriginRateLimiter:
    """Tests for OriginRateLimiter.gate()."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.mark.asyncio
    async def test_sequential_requests_are_spaced(self, clock):
        """Test each request waits at least the minimum delay."""
        limiter = make_limiter(clock)

        for _ in range(3):
            await limiter.gate(ORIGIN)

        assert clock.sleeps == [2.0, 2.0, 2.0]
        state = limiter.state(ORIGIN)
        assert state.request_count == 3
        assert state.last_request_at == 6.0

    @pytest.mark.asyncio
    async def test_delay_is_randomized_within_bounds(self, clock):
        """Test delays fall inside [min_delay, max_delay]."""
        limiter = make_limiter(clock, min_delay_ms=2000, max_delay_ms=5000)

        for _ in range(20):
            await limiter.gate(ORIGIN)

        assert all(2.0 <= delay <= 5.0 for delay in clock.sleeps)
        assert len(set(clock.sleeps)) > 1

    @pytest.mark.asyncio
    async def test_gate_returns_time_waited(self, clock):
        """Test gate() reports the time it suspended."""
        limiter = make_limiter(clock)

        waited = await limiter.gate(ORIGIN)

        assert waited == 2.0
        assert limiter.total_wait_time == 2.0

    @pytest.mark.asyncio
    async def test_window_cap_waits_for_window_end(self, clock):
        """Test the request cap suspends until the 60s window has elapsed."""
        limiter = make_limiter(clock, min_delay_ms=0, max_delay_ms=0, max_requests_per_minute=2)

        await limiter.gate(ORIGIN)
        await limiter.gate(ORIGIN)
        assert clock.sleeps == []

        clock.now = 15.0
        waited = await limiter.gate(ORIGIN)

        assert clock.sleeps == [45.0]
        assert waited == 45.0
        state = limiter.state(ORIGIN)
        assert state.request_count == 1
        assert state.window_started_at == 60.0

    @pytest.mark.asyncio
    async def test_window_resets_after_sixty_seconds(self, clock):
        """Test an elapsed window frees the cap without waiting."""
        limiter = make_limiter(clock, min_delay_ms=0, max_delay_ms=0, max_requests_per_minute=2)

        await limiter.gate(ORIGIN)
        await limiter.gate(ORIGIN)
        clock.now += 61.0
        waited = await limiter.gate(ORIGIN)

        assert waited == 0.0
        assert limiter.state(ORIGIN).request_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_same_origin_are_serialized(self, clock):
        """Test concurrent gates on one origin never overlap."""
        limiter = make_limiter(clock, min_delay_ms=1000, max_delay_ms=1000)

        await asyncio.gather(*(limiter.gate(ORIGIN) for _ in range(3)))

        assert clock.events == ["start", "end"] * 3
        state = limiter.state(ORIGIN)
        assert state.request_count == 3
        assert state.last_request_at == 3.0

    @pytest.mark.asyncio
    async def test_different_origins_do_not_share_state(self, clock):
        """Test per-origin bookkeeping."""
        limiter = make_limiter(clock, min_delay_ms=0, max_delay_ms=0, max_requests_per_minute=1)

        await limiter.gate("https://a.example")
        waited = await limiter.gate("https://b.example")

        assert waited == 0.0
        assert limiter.state("https://a.example").request_count == 1
        assert limiter.state("https://b.example").request_count == 1

    @pytest.mark.asyncio
    async def test_per_call_config_overrides_default(self, clock):
        """Test gate() honours a per-call budget."""
        limiter = make_limiter(clock)

        await limiter.gate(ORIGIN, ASSET_RATE_LIMIT)

        assert 0.025 <= clock.sleeps[0] <= 0.1

    @pytest.mark.asyncio
    async def test_asset_requests_do_not_consume_page_window(self, clock):
        """Test a burst of asset downloads leaves the page budget untouched."""
        limiter = make_limiter(clock)

        await limiter.gate(ORIGIN)
        for _ in range(30):
            await limiter.gate(ORIGIN, ASSET_RATE_LIMIT)
        waited = await limiter.gate(ORIGIN)

        assert waited == 2.0
        assert limiter.state(ORIGIN).request_count == 2
        assert limiter.state(ORIGIN, "asset").request_count == 30

    @pytest.mark.asyncio
    async def test_asset_bucket_has_its_own_window(self, clock):
        """Test the asset cap is enforced within the asset bucket."""
        limiter = make_limiter(clock)
        tight_assets = RateLimitConfig(min_delay_ms=0, max_delay_ms=0, max_requests_per_minute=2, bucket="asset")

        await limiter.gate(ORIGIN, tight_assets)
        await limiter.gate(ORIGIN, tight_assets)
        waited = await limiter.gate(ORIGIN, tight_assets)

        assert waited == 60.0
        assert limiter.state(ORIGIN) is None

    @pytest.mark.asyncio
    async def test_state_is_a_snapshot(self, clock):
        """Test state() cannot be used to mutate the limiter."""
        limiter = make_limiter(clock)
        await limiter.gate(ORIGIN)

        snapshot = limiter.state(ORIGIN)
        snapshot.request_count = 99

        assert limiter.state(ORIGIN).request_count == 1

    def test_state_unknown_origin(self, clock):
        """Test an origin that was never gated has no state."""
        limiter = make_limiter(clock)
        assert limiter.state(ORIGIN) is None

    @pytest.mark.asyncio
    async def test_reset_single_origin(self, clock):
        """Test reset() forgets one origin."""
        limiter = make_limiter(clock)
        await limiter.gate("https://a.example")
        await limiter.gate("https://b.example")

        limiter.reset("https://a.example")

        assert limiter.state("https://a.example") is None
        assert limiter.state("https://b.example") is not None

    @pytest.mark.asyncio
    async def test_reset_all_origins(self, clock):
        """Test reset() without an origin forgets everything."""
        limiter = make_limiter(clock)
        await limiter.gate("https://a.example")
        await limiter.gate("https://b.example")

        limiter.reset()

        assert limiter.state("https://a.example") is None
        assert limiter.state("https://b.example") is None
