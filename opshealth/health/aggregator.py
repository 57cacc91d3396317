import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

import loguru._logger

from ..auth.auth import AdminGuard
from ..metric.otel import ProbeMetrics
from ..schemas.health import (
    CachedHealthSnapshot,
    HealthResponse,
    HealthStatus,
    HistoryEntry,
    ProbeResult,
    ServiceHealth,
    ServiceId,
)
from ..utils.log_common import build_logger
from ..utils.timing import now_ms
from .history import HistoryWindow, round_percent
from .runner import ProbeRunner

CACHE_WINDOW_MS = 30_000
HISTORY_TAIL_SIZE = 100


def overall_status(results: Iterable[ProbeResult]) -> HealthStatus:
    """Worst status among the current results."""
    statuses = [r.status for r in results]
    if HealthStatus.DOWN in statuses:
        return HealthStatus.DOWN
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.OPERATIONAL


def overall_uptime(uptime: Dict[ServiceId, float]) -> float:
    """Unweighted mean of per-service uptimes; 100 when nothing is monitored."""
    if not uptime:
        return 100.0
    return round_percent(sum(uptime.values()) / len(uptime))


def _to_datetime(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class HealthAggregator:
    """
    Admin-only health snapshot with a short-lived cache and 24h uptime.

    Usage:
        ```python
        aggregator = HealthAggregator(
            runner=ProbeRunner(build_default_probes(settings)),
            guard=TokenAdminGuard(settings.admin_token_hashes),
        )
        payload = await aggregator.get_status(token)
        ```

    At most one probe run happens per cache window. Concurrent callers that
    miss the cache together wait for a single run unless ``coalesce_misses``
    is off.
    """

    def __init__(
        self,
        runner: ProbeRunner,
        guard: AdminGuard,
        cache_window_ms: int = CACHE_WINDOW_MS,
        history: Optional[HistoryWindow] = None,
        history_tail_size: int = HISTORY_TAIL_SIZE,
        coalesce_misses: bool = True,
        clock: Callable[[], int] = now_ms,
        metrics: Optional[ProbeMetrics] = None,
        logger: Optional[loguru._logger.Logger] = None,
    ):
        """
        Initialize HealthAggregator.

        Args:
            runner (ProbeRunner): Runs the configured probes on a cache miss.
            guard (AdminGuard): Authorization check done before any other work.
            cache_window_ms (int): How long a computed payload is reused.
            history (Optional[HistoryWindow]): Rolling history, 24h by default.
            history_tail_size (int): Number of history entries returned to callers.
            coalesce_misses (bool): Share one probe run between concurrent misses.
            clock (Callable[[], int]): Epoch-millisecond time source.
            metrics (Optional[ProbeMetrics]): Recorder for fresh probe results.
            logger (Optional[loguru._logger.Logger]): Logger instance.

        """
        self.runner = runner
        self.guard = guard
        self.cache_window_ms = cache_window_ms
        self.history_tail_size = history_tail_size
        self.coalesce_misses = coalesce_misses
        self.clock = clock
        self.metrics = metrics or ProbeMetrics()
        self.logger = logger or build_logger()
        self._history = history if history is not None else HistoryWindow()
        self._cached: Optional[CachedHealthSnapshot] = None
        self._refresh_lock = asyncio.Lock()

    @property
    def history(self) -> List[HistoryEntry]:
        return self._history.entries

    @property
    def cached_result(self) -> Optional[CachedHealthSnapshot]:
        if self._cached is None:
            return None
        return self._cached.model_copy(deep=True)

    async def get_status(self, credentials: Optional[str] = None) -> HealthResponse:
        """Return the current health payload, probing only when the cache is stale."""
        await self.guard.require_admin(credentials)

        cached = self._from_cache(self.clock())
        if cached is not None:
            return cached

        if not self.coalesce_misses:
            return await self._refresh(self.clock())

        async with self._refresh_lock:
            cached = self._from_cache(self.clock())
            if cached is not None:
                return cached
            return await self._refresh(self.clock())

    def _from_cache(self, now: int) -> Optional[HealthResponse]:
        if self._cached is None:
            return None
        if now - self._cached.computed_at_millis >= self.cache_window_ms:
            return None
        self.logger.debug("Serving cached health status")
        return self._cached.payload.model_copy(update={"from_cache": True}, deep=True)

    async def _refresh(self, now: int) -> HealthResponse:
        results = await self.runner.run_all()
        self.metrics.record(results)

        self._history.extend(
            HistoryEntry(
                service_id=r.service_id,
                status=r.status,
                response_time_ms=r.response_time_ms,
                timestamp=now,
            )
            for r in results
        )
        uptime = self._history.uptime(self.runner.service_ids, now)

        status = overall_status(results)
        payload = HealthResponse(
            services=[
                ServiceHealth(**r.model_dump(), uptime_24h=uptime.get(r.service_id, 100.0))
                for r in results
            ],
            overall_status=status,
            overall_uptime_24h=overall_uptime(uptime),
            checked_at=_to_datetime(now),
            cache_expires_at=_to_datetime(now + self.cache_window_ms),
            from_cache=False,
            history=self._history.tail(self.history_tail_size),
        )
        self._cached = CachedHealthSnapshot(
            payload=payload.model_copy(deep=True), computed_at_millis=now
        )
        self.logger.info(
            f"Health refreshed: {status.value} across {len(results)} services"
        )
        return payload

    async def close(self) -> None:
        await self.runner.close()
