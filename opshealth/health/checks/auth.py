from typing import Optional

import httpx

from ...schemas.health import ServiceId
from ..base import HealthProbeBase, ProbeConfig, ProbeFailure


class AuthProbe(HealthProbeBase):
    """Fetches the identity provider's health/session endpoint."""

    service_id = ServiceId.SUPABASE_AUTH
    label = "Supabase Auth"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
    ):  # noqa: D107
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def check(self, config: ProbeConfig):
        if not self.base_url:
            raise ProbeFailure("Auth URL not configured")
        headers = {"apikey": self.api_key} if self.api_key else {}
        resp = await self.client.get(
            f"{self.base_url}/auth/v1/health",
            headers=headers,
            timeout=config.timeout_ms / 1000,
        )
        if not resp.is_success:
            raise ProbeFailure(f"Auth responded with {resp.status_code}")
        return resp.json()

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
