import asyncio
from typing import Any, Optional

from minio import Minio

from ...schemas.health import ServiceId
from ..base import HealthProbeBase, ProbeConfig


class StorageProbe(HealthProbeBase):
    service_id = ServiceId.SUPABASE_STORAGE
    label = "Supabase Storage"

    def __init__(self, client: Minio):  # noqa: D107
        self.client = client

    async def check(self, config: ProbeConfig):
        """List buckets; the blocking client runs in a worker thread."""
        return await asyncio.to_thread(self.client.list_buckets)

    def details(self, payload: Any, error: Any) -> Optional[dict[str, Any]]:
        if error or payload is None:
            return None
        return {"buckets": len(payload)}
