from typing import Any, Optional

import asyncpg  # type: ignore

from ...schemas.health import ServiceId
from ..base import HealthProbeBase, ProbeConfig, ProbeFailure


class DatabaseProbe(HealthProbeBase):
    service_id = ServiceId.SUPABASE_DB
    label = "Supabase Database"

    def __init__(self, dsn: str, query: str = "SELECT 1"):  # noqa: D107
        self.dsn = dsn
        self.query = query

    async def check(self, config: ProbeConfig):
        """Run a trivial bounded read against the primary store."""
        if not self.dsn:
            raise ProbeFailure("Database DSN not configured")
        conn = await asyncpg.connect(self.dsn, timeout=config.timeout_ms / 1000)
        try:
            return await conn.fetchval(self.query)
        finally:
            await conn.close()

    def details(self, payload: Any, error: Any) -> Optional[dict[str, Any]]:
        return {"connection": "unavailable" if error else "ok"}
