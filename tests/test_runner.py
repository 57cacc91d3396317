"""Tests for concurrent probe execution."""

import time
from unittest.mock import MagicMock

import pytest

from opshealth.health.base import ProbeConfig
from opshealth.health.runner import ProbeRunner
from opshealth.schemas.health import HealthStatus, ServiceId

from .conftest import FakeProbe


class CrashingProbe(FakeProbe):
    async def run(self, config=None):
        raise RuntimeError("probe bug")


async def test_results_follow_configured_order(quiet_logger) -> None:
    slow = FakeProbe(ServiceId.SUPABASE_AUTH, delay=0.05)
    fast = FakeProbe(ServiceId.SUPABASE_DB)
    runner = ProbeRunner([slow, fast], logger=quiet_logger)

    results = await runner.run_all()

    assert fast.finished_at < slow.finished_at
    assert [r.service_id for r in results] == [
        ServiceId.SUPABASE_AUTH,
        ServiceId.SUPABASE_DB,
    ]


async def test_probes_run_concurrently(quiet_logger) -> None:
    probes = [
        FakeProbe(ServiceId.SUPABASE_AUTH, delay=0.1),
        FakeProbe(ServiceId.SUPABASE_DB, delay=0.1),
        FakeProbe(ServiceId.API, delay=0.1),
    ]
    runner = ProbeRunner(probes, logger=quiet_logger)

    start = time.perf_counter()
    await runner.run_all()

    assert time.perf_counter() - start < 0.28


async def test_failures_never_escape(quiet_logger) -> None:
    runner = ProbeRunner(
        [
            FakeProbe(ServiceId.SUPABASE_AUTH, error="session fetch failed"),
            FakeProbe(ServiceId.SUPABASE_DB, delay=1.0),
            CrashingProbe(ServiceId.API),
            FakeProbe(ServiceId.EDGE_FUNCTIONS),
        ],
        logger=quiet_logger,
    )

    results = await runner.run_all(ProbeConfig(timeout_ms=30))

    assert [r.status for r in results] == [
        HealthStatus.DOWN,
        HealthStatus.DOWN,
        HealthStatus.DOWN,
        HealthStatus.OPERATIONAL,
    ]
    assert all(r.error for r in results[:3])
    assert results[2].error == "probe bug"


async def test_default_config_is_used(quiet_logger) -> None:
    probe = FakeProbe(ServiceId.API, delay=1.0)
    runner = ProbeRunner([probe], config=ProbeConfig(timeout_ms=20), logger=quiet_logger)

    (result,) = await runner.run_all()

    assert result.status == HealthStatus.DOWN


def test_duplicate_services_rejected(quiet_logger) -> None:
    with pytest.raises(ValueError):
        ProbeRunner(
            [FakeProbe(ServiceId.API), FakeProbe(ServiceId.API)], logger=quiet_logger
        )


def test_service_ids(runner) -> None:
    assert runner.service_ids == [
        ServiceId.SUPABASE_AUTH,
        ServiceId.SUPABASE_DB,
        ServiceId.API,
    ]


def test_health_package_exports() -> None:
    from opshealth.health import HealthAggregator, ProbeRunner as ExportedRunner

    assert ExportedRunner is ProbeRunner
    assert callable(HealthAggregator)


async def test_run_timing_goes_to_runner_logger() -> None:
    logger = MagicMock()
    runner = ProbeRunner([FakeProbe(ServiceId.API)], logger=logger)

    await runner.run_all()

    timing_logs = [c.args[0] for c in logger.debug.call_args_list if "[health]" in c.args[0]]
    assert len(timing_logs) == 1
