"""Tests for caching, history folding and status reduction in HealthAggregator."""

import asyncio
import itertools

import pytest

from opshealth.auth.auth import Unauthorized
from opshealth.health.aggregator import HealthAggregator, overall_status, overall_uptime
from opshealth.health.history import HistoryWindow
from opshealth.health.runner import ProbeRunner
from opshealth.schemas.health import (
    HealthStatus,
    HistoryEntry,
    ProbeResult,
    ServiceId,
)

from .conftest import FakeGuard, FakeProbe

HOUR_MS = 60 * 60 * 1000


def _result(status: HealthStatus) -> ProbeResult:
    return ProbeResult(
        service_id=ServiceId.API,
        label="Internal API",
        status=status,
        response_time_ms=5,
        checked_at="2024-01-01T00:00:00Z",
    )


# ── Status reduction ─────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "statuses", list(itertools.product(list(HealthStatus), repeat=3))
)
def test_overall_status_is_worst(statuses) -> None:
    expected = max(statuses, key=lambda s: s.severity)
    assert overall_status(_result(s) for s in statuses) == expected


def test_overall_status_degraded_example() -> None:
    statuses = [HealthStatus.OPERATIONAL, HealthStatus.DEGRADED, HealthStatus.OPERATIONAL]
    assert overall_status(_result(s) for s in statuses) == HealthStatus.DEGRADED


def test_overall_status_with_no_services() -> None:
    assert overall_status([]) == HealthStatus.OPERATIONAL


def test_overall_uptime() -> None:
    assert overall_uptime({}) == 100.0
    assert overall_uptime({ServiceId.API: 80.0, ServiceId.SUPABASE_DB: 100.0}) == 90.0
    assert (
        overall_uptime(
            {ServiceId.API: 50.0, ServiceId.SUPABASE_DB: 100.0, ServiceId.SUPABASE_AUTH: 100.0}
        )
        == 83.33
    )


# ── Cache ────────────────────────────────────────────────────────────────────


class TestCache:
    async def test_second_call_within_window_is_cached(self, aggregator, probes, clock) -> None:
        first = await aggregator.get_status("token")
        clock.advance(10_000)
        second = await aggregator.get_status("token")

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.services == first.services
        assert second.overall_status == first.overall_status
        assert second.checked_at == first.checked_at
        assert all(p.calls == 1 for p in probes)

    async def test_call_after_window_probes_again(self, aggregator, probes, clock) -> None:
        await aggregator.get_status("token")
        clock.advance(31_000)
        again = await aggregator.get_status("token")

        assert again.from_cache is False
        assert all(p.calls == 2 for p in probes)

    async def test_window_boundary_is_a_miss(self, aggregator, probes, clock) -> None:
        await aggregator.get_status("token")
        clock.advance(30_000)
        again = await aggregator.get_status("token")

        assert again.from_cache is False

    async def test_cache_expiry_fields(self, aggregator, clock) -> None:
        payload = await aggregator.get_status("token")

        delta = payload.cache_expires_at - payload.checked_at
        assert delta.total_seconds() == 30
        assert int(payload.checked_at.timestamp() * 1000) == clock.now

    async def test_callers_cannot_mutate_cache(self, aggregator, clock) -> None:
        first = await aggregator.get_status("token")
        first.services[0].label = "tampered"
        first.history.clear()

        second = await aggregator.get_status("token")

        assert second.services[0].label != "tampered"
        assert len(second.history) == 3


# ── History and uptime ───────────────────────────────────────────────────────


class TestHistory:
    async def test_results_are_appended_in_order(self, aggregator, clock) -> None:
        payload = await aggregator.get_status("token")

        assert [e.service_id for e in aggregator.history] == [
            ServiceId.SUPABASE_AUTH,
            ServiceId.SUPABASE_DB,
            ServiceId.API,
        ]
        assert all(e.timestamp == clock.now for e in aggregator.history)
        assert payload.history == aggregator.history

    async def test_uptime_reflects_window(self, guard, clock, quiet_logger) -> None:
        history = HistoryWindow()
        history.extend(
            HistoryEntry(
                service_id=ServiceId.API,
                status=HealthStatus.DOWN,
                response_time_ms=0,
                timestamp=clock.now - hours * HOUR_MS,
            )
            for hours in (25, 23)
        )
        runner = ProbeRunner([FakeProbe(ServiceId.API)], logger=quiet_logger)
        aggregator = HealthAggregator(
            runner=runner, guard=guard, clock=clock, history=history, logger=quiet_logger
        )

        payload = await aggregator.get_status("token")

        # one down entry at -23h plus the fresh operational result
        assert payload.services[0].uptime_24h == 50.0
        assert payload.overall_uptime_24h == 50.0
        assert [e.timestamp for e in payload.history] == [
            clock.now - 23 * HOUR_MS,
            clock.now,
        ]

    async def test_history_tail_is_capped(self, guard, clock, quiet_logger) -> None:
        runner = ProbeRunner([FakeProbe(ServiceId.API)], logger=quiet_logger)
        aggregator = HealthAggregator(
            runner=runner,
            guard=guard,
            clock=clock,
            history_tail_size=2,
            logger=quiet_logger,
        )
        for _ in range(4):
            payload = await aggregator.get_status("token")
            clock.advance(31_000)

        assert len(aggregator.history) == 4
        assert len(payload.history) == 2
        assert payload.history[-1] == aggregator.history[-1]

    async def test_failing_service_lowers_uptime(self, guard, clock, quiet_logger) -> None:
        runner = ProbeRunner(
            [FakeProbe(ServiceId.SUPABASE_DB, error="db down"), FakeProbe(ServiceId.API)],
            logger=quiet_logger,
        )
        aggregator = HealthAggregator(
            runner=runner, guard=guard, clock=clock, logger=quiet_logger
        )

        payload = await aggregator.get_status("token")

        by_id = {s.service_id: s for s in payload.services}
        assert by_id[ServiceId.SUPABASE_DB].uptime_24h == 0.0
        assert by_id[ServiceId.SUPABASE_DB].error == "db down"
        assert by_id[ServiceId.API].uptime_24h == 100.0
        assert payload.overall_status == HealthStatus.DOWN
        assert payload.overall_uptime_24h == 50.0


# ── Ordering and authorization ───────────────────────────────────────────────


async def test_services_keep_configured_order(guard, clock, quiet_logger) -> None:
    first = FakeProbe(ServiceId.SUPABASE_AUTH, delay=0.05)
    second = FakeProbe(ServiceId.SUPABASE_STORAGE)
    aggregator = HealthAggregator(
        runner=ProbeRunner([first, second], logger=quiet_logger),
        guard=guard,
        clock=clock,
        logger=quiet_logger,
    )

    payload = await aggregator.get_status("token")

    assert second.finished_at < first.finished_at
    assert [s.service_id for s in payload.services] == [
        ServiceId.SUPABASE_AUTH,
        ServiceId.SUPABASE_STORAGE,
    ]


async def test_unauthorized_has_no_side_effects(runner, probes, clock, quiet_logger) -> None:
    aggregator = HealthAggregator(
        runner=runner, guard=FakeGuard(allow=False), clock=clock, logger=quiet_logger
    )

    with pytest.raises(Unauthorized):
        await aggregator.get_status("not-an-admin")

    assert aggregator.history == []
    assert aggregator.cached_result is None
    assert all(p.calls == 0 for p in probes)


async def test_unauthorized_checked_before_cache(aggregator, guard) -> None:
    await aggregator.get_status("token")
    guard.allow = False

    with pytest.raises(Unauthorized):
        await aggregator.get_status("token")


# ── Concurrent misses ────────────────────────────────────────────────────────


async def test_concurrent_misses_share_one_run(guard, clock, quiet_logger) -> None:
    probe = FakeProbe(ServiceId.API, delay=0.05)
    aggregator = HealthAggregator(
        runner=ProbeRunner([probe], logger=quiet_logger),
        guard=guard,
        clock=clock,
        logger=quiet_logger,
    )

    payloads = await asyncio.gather(*(aggregator.get_status("token") for _ in range(3)))

    assert probe.calls == 1
    assert sorted(p.from_cache for p in payloads) == [False, True, True]
    assert len(aggregator.history) == 1


async def test_concurrent_misses_without_coalescing(guard, clock, quiet_logger) -> None:
    probe = FakeProbe(ServiceId.API, delay=0.05)
    aggregator = HealthAggregator(
        runner=ProbeRunner([probe], logger=quiet_logger),
        guard=guard,
        clock=clock,
        coalesce_misses=False,
        logger=quiet_logger,
    )

    await asyncio.gather(*(aggregator.get_status("token") for _ in range(2)))

    assert probe.calls == 2
    assert len(aggregator.history) == 2
