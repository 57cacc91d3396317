from typing import List, Optional
from urllib.parse import urlparse

from minio import Minio

from ..schemas.settings import HealthSettings
from .base import HealthProbeBase, ProbeConfig
from .checks.api import ApiProbe, StatusCall
from .checks.auth import AuthProbe
from .checks.database import DatabaseProbe
from .checks.edge_functions import EdgeFunctionsProbe
from .checks.storage import StorageProbe


def probe_config(settings: HealthSettings) -> ProbeConfig:
    return ProbeConfig(
        timeout_ms=settings.probe_timeout_ms,
        degraded_latency_ms=settings.degraded_latency_ms,
        down_latency_ms=settings.down_latency_ms,
        edge_health_url=settings.edge_health_url,
    )


def storage_client(settings: HealthSettings) -> Minio:
    """Build an S3 client for the storage endpoint; a bare host or a full URL is accepted."""
    endpoint = settings.storage_endpoint or "localhost:9000"
    secure = settings.storage_secure
    if "://" in endpoint:
        parsed = urlparse(endpoint)
        secure = parsed.scheme == "https"
        endpoint = parsed.netloc
    return Minio(
        endpoint=endpoint,
        access_key=settings.storage_access_key or None,
        secret_key=settings.storage_secret_key or None,
        secure=secure,
    )


def build_default_probes(
    settings: HealthSettings, api_status: Optional[StatusCall] = None
) -> List[HealthProbeBase]:
    """The five monitored services, in display order."""
    return [
        AuthProbe(settings.supabase_url, api_key=settings.supabase_anon_key),
        DatabaseProbe(settings.database_dsn, query=settings.database_probe_query),
        StorageProbe(storage_client(settings)),
        ApiProbe(api_status),
        EdgeFunctionsProbe(settings.edge_health_url),
    ]
