"""Shared test fixtures."""

import asyncio
from typing import Optional

import loguru
import pytest

from opshealth.auth.auth import AdminGuard, AdminUser, Unauthorized
from opshealth.health.aggregator import HealthAggregator
from opshealth.health.base import HealthProbeBase, ProbeConfig, ProbeFailure
from opshealth.health.runner import ProbeRunner
from opshealth.schemas.health import ServiceId


class FakeProbe(HealthProbeBase):
    """Probe whose outcome is scripted by the test."""

    def __init__(
        self,
        service_id: ServiceId,
        delay: float = 0.0,
        error: Optional[str] = None,
        payload=None,
    ):
        self.service_id = service_id
        self.label = service_id.value.replace("-", " ").title()
        self.delay = delay
        self.error = error
        self.payload = payload if payload is not None else {"ok": True}
        self.calls = 0
        self.finished_at = None

    async def check(self, config: ProbeConfig):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        self.finished_at = asyncio.get_running_loop().time()
        if self.error:
            raise ProbeFailure(self.error)
        return self.payload


class FakeGuard(AdminGuard):
    def __init__(self, allow: bool = True):
        self.allow = allow
        self.calls = 0

    async def require_admin(self, credentials):
        self.calls += 1
        if not self.allow:
            raise Unauthorized("Forbidden: Admin access required")
        return AdminUser(id="admin-1", account_type="admin")


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


@pytest.fixture
def quiet_logger():
    """Plain loguru logger so tests do not add file sinks."""
    return loguru.logger


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def guard() -> FakeGuard:
    return FakeGuard()


@pytest.fixture
def probes():
    return [
        FakeProbe(ServiceId.SUPABASE_AUTH),
        FakeProbe(ServiceId.SUPABASE_DB),
        FakeProbe(ServiceId.API),
    ]


@pytest.fixture
def runner(probes, quiet_logger) -> ProbeRunner:
    return ProbeRunner(probes, logger=quiet_logger)


@pytest.fixture
def aggregator(runner, guard, clock, quiet_logger) -> HealthAggregator:
    return HealthAggregator(runner=runner, guard=guard, clock=clock, logger=quiet_logger)
