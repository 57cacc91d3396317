import asyncio
from typing import List, Optional

import loguru._logger

from ..schemas.health import HealthStatus, ProbeResult, ServiceId
from ..utils.log_common import build_logger
from ..utils.timing import measure_time
from .base import HealthProbeBase, ProbeConfig, sanitize_error


class ProbeRunner:
    """
    Runs every configured probe concurrently and returns one result per probe.

    Results come back in the order the probes were configured, however the
    probes finish. A probe that raises despite the base class guard is
    reported as down rather than failing the batch.
    """

    def __init__(
        self,
        probes: List[HealthProbeBase],
        config: Optional[ProbeConfig] = None,
        logger: Optional[loguru._logger.Logger] = None,
    ):
        """
        Initialize ProbeRunner.

        Args:
            probes (List[HealthProbeBase]): Probe instances, in display order.
            config (Optional[ProbeConfig]): Default tuning used by run_all.
            logger (Optional[loguru._logger.Logger]): Logger instance for probe outcomes.

        Raises:
            ValueError: If two probes share a service id.

        """
        seen = set()
        for probe in probes:
            if probe.service_id in seen:
                raise ValueError(f"Duplicate probe for service '{probe.service_id.value}'")
            seen.add(probe.service_id)

        self.probes = list(probes)
        self.config = config or ProbeConfig()
        self.logger = logger or build_logger()
        self.run_all = measure_time(
            self.run_all, logger=self.logger, tag="health", threshold_warning=5.0
        )

    @property
    def service_ids(self) -> List[ServiceId]:
        return [probe.service_id for probe in self.probes]

    async def run_all(self, config: Optional[ProbeConfig] = None) -> List[ProbeResult]:
        """Run all probes once and wait for every one of them."""
        config = config or self.config
        responses = await asyncio.gather(
            *(probe.run(config) for probe in self.probes), return_exceptions=True
        )

        results = []
        for probe, response in zip(self.probes, responses):
            if isinstance(response, BaseException):
                if not isinstance(response, Exception):
                    raise response
                self.logger.error(f"[{probe.service_id.value}] probe crashed: {response}")
                response = probe.result(
                    status=HealthStatus.DOWN,
                    response_time_ms=0,
                    error=sanitize_error(response),
                )
            self._log_result(response)
            results.append(response)
        return results

    def _log_result(self, result: ProbeResult) -> None:
        name = result.service_id.value
        if result.status == HealthStatus.DOWN:
            self.logger.error(f"[{name}] down after {result.response_time_ms}ms: {result.error}")
        elif result.status == HealthStatus.DEGRADED:
            self.logger.warning(
                f"[{name}] degraded ({result.response_time_ms}ms): {result.error or 'slow response'}"
            )
        else:
            self.logger.debug(f"[{name}] operational ({result.response_time_ms}ms)")

    async def close(self) -> None:
        for probe in self.probes:
            await probe.close()
