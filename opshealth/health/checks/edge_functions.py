from typing import Optional

import httpx

from ...schemas.health import HealthStatus, ProbeResult, ServiceId
from ..base import HealthProbeBase, ProbeConfig, ProbeFailure

NOT_CONFIGURED = "No edge functions configured"


class EdgeFunctionsProbe(HealthProbeBase):
    """
    GETs the optional edge-function health URL.

    A missing URL is a configuration gap, not an outage, so it reports
    degraded without making a request.
    """

    service_id = ServiceId.EDGE_FUNCTIONS
    label = "Edge Functions"

    def __init__(
        self, url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None
    ):  # noqa: D107
        self.url = url
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _target(self, config: ProbeConfig) -> Optional[str]:
        return config.edge_health_url or self.url

    async def run(self, config: Optional[ProbeConfig] = None) -> ProbeResult:
        config = config or ProbeConfig()
        if not self._target(config):
            return self.result(
                status=HealthStatus.DEGRADED, response_time_ms=0, error=NOT_CONFIGURED
            )
        return await super().run(config)

    async def check(self, config: ProbeConfig):
        resp = await self.client.get(
            self._target(config),
            headers={"Cache-Control": "no-store"},
            timeout=config.timeout_ms / 1000,
        )
        if not resp.is_success:
            raise ProbeFailure(f"Edge function responded with {resp.status_code}")
        return resp.text

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
