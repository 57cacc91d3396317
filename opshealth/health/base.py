import asyncio
import json
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from ..schemas.health import HealthStatus, ProbeResult, ServiceId
from ..utils.timing import elapsed_ms

MAX_ERROR_LENGTH = 200
TIMEOUT_MESSAGE = "Health check timed out"


class ProbeConfig(BaseModel):
    """Per-run probe tuning, usually derived from HealthSettings."""

    timeout_ms: int = 5_000
    degraded_latency_ms: int = 200
    down_latency_ms: Optional[int] = 1_000
    edge_health_url: Optional[str] = None


class ProbeFailure(Exception):
    """A dependency answered, but with an error."""


def sanitize_error(error: Any) -> Optional[str]:
    """Shorten an error into a diagnostic string safe to show on the dashboard."""
    if error is None or error == "":
        return None
    if isinstance(error, str):
        return error[:MAX_ERROR_LENGTH]
    if isinstance(error, asyncio.TimeoutError):
        return TIMEOUT_MESSAGE
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
        return message[:MAX_ERROR_LENGTH]
    try:
        return json.dumps(error, default=str)[:MAX_ERROR_LENGTH]
    except (TypeError, ValueError):
        return "Unknown error"


def classify(
    response_time_ms: int, error: Any, config: ProbeConfig
) -> HealthStatus:
    """Map an outcome to a status: errors and very slow answers are down."""
    if error:
        return HealthStatus.DOWN
    if config.down_latency_ms is not None and response_time_ms > config.down_latency_ms:
        return HealthStatus.DOWN
    if response_time_ms > config.degraded_latency_ms:
        return HealthStatus.DEGRADED
    return HealthStatus.OPERATIONAL


def payload_error(payload: Any) -> Any:
    """Return the error carried by an ``{"error": ...}`` style response, if any."""
    if isinstance(payload, Mapping):
        return payload.get("error") or None
    return getattr(payload, "error", None) or None


class HealthProbeBase(ABC):
    """
    Base class for all service probes.

    Subclasses implement :meth:`check`, which performs the I/O and either
    returns the dependency's payload or raises. :meth:`run` wraps it with
    timing, the timeout and classification, and never raises.
    """

    service_id: ServiceId
    label: str

    @abstractmethod
    async def check(self, config: ProbeConfig) -> Any:
        """Talk to the dependency and return its payload."""
        ...

    def details(self, payload: Any, error: Any) -> Optional[dict[str, Any]]:
        return None

    async def close(self) -> None:
        """Release clients held by the probe."""

    async def run(self, config: Optional[ProbeConfig] = None) -> ProbeResult:
        config = config or ProbeConfig()
        start = time.perf_counter()
        payload = None
        error = None
        try:
            payload = await asyncio.wait_for(
                self.check(config), timeout=config.timeout_ms / 1000
            )
            error = payload_error(payload)
        except Exception as e:
            error = e
        duration = elapsed_ms(start)

        return self.result(
            status=classify(duration, error, config),
            response_time_ms=duration,
            error=sanitize_error(error),
            details=self.details(payload, error),
        )

    def result(
        self,
        status: HealthStatus,
        response_time_ms: int,
        error: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> ProbeResult:
        return ProbeResult(
            service_id=self.service_id,
            label=self.label,
            status=status,
            response_time_ms=response_time_ms,
            checked_at=datetime.now(timezone.utc),
            error=error,
            details=details,
        )
