from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class HealthStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    DOWN = "down"

    @property
    def severity(self) -> int:
        """Rank used for worst-of reductions, higher is worse."""
        return _SEVERITY[self]


_SEVERITY = {
    HealthStatus.OPERATIONAL: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.DOWN: 2,
}


class ServiceId(str, Enum):
    """Monitored services, declared in display order."""

    SUPABASE_AUTH = "supabase-auth"
    SUPABASE_DB = "supabase-db"
    SUPABASE_STORAGE = "supabase-storage"
    API = "api"
    EDGE_FUNCTIONS = "edge-functions"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ProbeResult(_CamelModel):
    service_id: ServiceId
    label: str
    status: HealthStatus
    response_time_ms: int = Field(ge=0)
    checked_at: datetime
    error: Optional[str] = None
    details: Optional[dict[str, Any]] = None


class ServiceHealth(ProbeResult):
    uptime_24h: float = Field(default=100, alias="uptime24h")


class HistoryEntry(_CamelModel):
    model_config = ConfigDict(frozen=True)

    service_id: ServiceId
    status: HealthStatus
    response_time_ms: int
    timestamp: int


class HealthResponse(_CamelModel):
    services: list[ServiceHealth]
    overall_status: HealthStatus
    overall_uptime_24h: float = Field(alias="overallUptime24h")
    checked_at: datetime
    cache_expires_at: datetime
    from_cache: bool = False
    history: list[HistoryEntry] = Field(default_factory=list)


class CachedHealthSnapshot(BaseModel):
    payload: HealthResponse
    computed_at_millis: int
