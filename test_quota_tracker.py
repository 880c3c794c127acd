#!/usr/bin/env python3
"""
Tests for the quota tracker.

Covers local admission, window resets, server resynchronization and the
rolling-window guarantee, all on a fake clock.
"""

import pytest

from hypixel_api.api.rate_limiting.models import ServerRateLimitState, ThrottleConfig
from hypixel_api.api.rate_limiting.tracker import QuotaTracker


def _tracker(clock, **overrides):
    settings = {"requests_per_window": 120, "window_seconds": 60.0, "reset_margin": 0.0}
    settings.update(overrides)
    return QuotaTracker(ThrottleConfig(**settings), clock=clock)


class TestLocalAdmission:
    """Admission against the locally tracked window."""

    @pytest.mark.asyncio
    async def test_admits_up_to_limit_then_denies(self, clock):
        tracker = _tracker(clock)

        admissions = [await tracker.try_consume() for _ in range(150)]

        allowed = [a for a in admissions if a.allowed]
        denied = [a for a in admissions if not a.allowed]
        assert len(allowed) == 120
        assert len(denied) == 30
        assert allowed[-1].remaining == 0
        assert all(a.wait_until == 60.0 for a in denied)
        assert tracker.in_flight == 120

    @pytest.mark.asyncio
    async def test_window_resets_exactly_once(self, clock):
        tracker = _tracker(clock, requests_per_window=3, window_seconds=10.0)

        for _ in range(3):
            assert (await tracker.try_consume()).allowed
        assert not (await tracker.try_consume()).allowed

        clock.advance(10.0)
        first = await tracker.try_consume()
        assert first.allowed
        assert first.remaining == 2
        assert tracker.window_resets == 1

        # Further calls inside the new window must not reset again
        clock.advance(1.0)
        assert (await tracker.try_consume()).allowed
        assert (await tracker.try_consume()).allowed
        assert not (await tracker.try_consume()).allowed
        assert tracker.window_resets == 1

    @pytest.mark.asyncio
    async def test_fixed_window_boundary_burst_is_prevented(self, clock):
        """A full window at the end of one period blocks the start of the next."""
        tracker = _tracker(clock, requests_per_window=5, window_seconds=10.0)

        clock.advance(9.5)
        for _ in range(5):
            assert (await tracker.try_consume()).allowed

        clock.advance(0.5)
        admission = await tracker.try_consume()
        assert not admission.allowed
        assert admission.wait_until == pytest.approx(19.5)

        clock.now = 19.5
        assert (await tracker.try_consume()).allowed

    @pytest.mark.asyncio
    async def test_rolling_window_never_exceeds_limit(self, clock):
        limit, window = 5, 10.0
        tracker = _tracker(clock, requests_per_window=limit, window_seconds=window)

        # Uneven arrivals, including bursts and idle gaps
        gaps = [0.0, 0.1, 0.1, 2.3, 0.0, 0.7, 4.1, 0.05, 0.05, 3.3, 1.9, 0.0]
        admitted_at = []
        for step in range(400):
            clock.advance(gaps[step % len(gaps)])
            if (await tracker.try_consume()).allowed:
                admitted_at.append(clock.now)

        assert admitted_at
        for t in admitted_at:
            in_window = [a for a in admitted_at if t - window < a <= t]
            assert len(in_window) <= limit

    @pytest.mark.asyncio
    async def test_snapshot_reports_current_window(self, clock):
        tracker = _tracker(clock, requests_per_window=4, window_seconds=10.0)
        await tracker.try_consume()

        window = await tracker.snapshot()
        assert window.limit == 4
        assert window.remaining == 3
        assert window.reset_at == 10.0

        # Snapshots are copies
        window.remaining = 0
        assert (await tracker.snapshot()).remaining == 3


class TestServerSynchronization:
    """Server-reported state overrides local bookkeeping."""

    @pytest.mark.asyncio
    async def test_server_exhaustion_overrides_local_belief(self, clock):
        tracker = _tracker(clock)
        for _ in range(70):
            await tracker.try_consume()

        # Locally 50 are left, the server says none until t+30
        await tracker.observe_server_state(
            ServerRateLimitState(remaining=0, reset_after=30.0, limit=120)
        )

        clock.advance(29.9)
        admission = await tracker.try_consume()
        assert not admission.allowed
        assert admission.wait_until == pytest.approx(30.0)

        clock.now = 30.0
        assert (await tracker.try_consume()).allowed

    @pytest.mark.asyncio
    async def test_reset_margin_is_added(self, clock):
        tracker = _tracker(clock, reset_margin=2.0)
        await tracker.try_consume()
        await tracker.observe_server_state(ServerRateLimitState(remaining=0, reset_after=5.0))

        admission = await tracker.try_consume()
        assert admission.wait_until == pytest.approx(7.0)

    @pytest.mark.asyncio
    async def test_stale_server_state_does_not_block(self, clock):
        tracker = _tracker(clock)
        await tracker.try_consume()
        await tracker.observe_server_state(ServerRateLimitState(remaining=0, reset_after=0.0))

        # The reported reset is already in the past
        clock.advance(0.001)
        assert (await tracker.try_consume()).allowed

    @pytest.mark.asyncio
    async def test_in_flight_requests_are_subtracted(self, clock):
        tracker = _tracker(clock)
        for _ in range(3):
            await tracker.try_consume()
        assert tracker.in_flight == 3

        await tracker.observe_server_state(
            ServerRateLimitState(remaining=100, reset_after=40.0)
        )

        window = await tracker.snapshot()
        assert tracker.in_flight == 2
        assert window.remaining == 98

    @pytest.mark.asyncio
    async def test_empty_state_only_settles_in_flight(self, clock):
        tracker = _tracker(clock)
        await tracker.try_consume()

        await tracker.observe_server_state(ServerRateLimitState())

        window = await tracker.snapshot()
        assert tracker.in_flight == 0
        assert window.remaining == 119
        assert tracker.server_syncs == 0

    @pytest.mark.asyncio
    async def test_server_limit_is_applied(self, clock):
        tracker = _tracker(clock)
        await tracker.try_consume()

        await tracker.observe_server_state(ServerRateLimitState(limit=60, remaining=200))

        window = await tracker.snapshot()
        assert window.limit == 60
        assert window.remaining == 60

    @pytest.mark.asyncio
    async def test_force_exhausted_blocks_until_retry_after(self, clock):
        tracker = _tracker(clock)

        await tracker.force_exhausted(5.0)

        admission = await tracker.try_consume()
        assert not admission.allowed
        assert admission.wait_until == pytest.approx(5.0)

        clock.advance(5.0)
        assert (await tracker.try_consume()).allowed

    @pytest.mark.asyncio
    async def test_release_returns_unused_admission(self, clock):
        tracker = _tracker(clock, requests_per_window=2, window_seconds=10.0)
        await tracker.try_consume()
        await tracker.try_consume()
        assert not (await tracker.try_consume()).allowed

        await tracker.release()

        assert tracker.in_flight == 1
        admission = await tracker.try_consume()
        assert admission.allowed
        assert admission.remaining == 0

    @pytest.mark.asyncio
    async def test_non_positive_server_limit_is_ignored(self, clock):
        tracker = _tracker(clock)
        await tracker.try_consume()

        await tracker.observe_server_state(ServerRateLimitState(limit=0, remaining=10))

        assert (await tracker.snapshot()).limit == 120
        assert (await tracker.try_consume()).allowed

    @pytest.mark.asyncio
    async def test_statistics(self, clock):
        tracker = _tracker(clock, requests_per_window=1)
        await tracker.try_consume()
        await tracker.try_consume()

        stats = tracker.get_statistics()
        assert stats["total_admitted"] == 1
        assert stats["total_denied"] == 1
        assert stats["in_flight"] == 1
        assert stats["remaining"] == 0
