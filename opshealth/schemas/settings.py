from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import LogLevel


class HealthSettings(BaseSettings):
    """Runtime configuration, read from OPSHEALTH_* variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="OPSHEALTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Identity provider / hosted backend
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Primary data store
    database_dsn: str = ""
    database_probe_query: str = "SELECT 1"

    # S3-compatible object storage
    storage_endpoint: str = ""
    storage_access_key: str = ""
    storage_secret_key: str = ""
    storage_secure: bool = True

    # Optional; the edge-functions probe reports degraded when unset
    edge_health_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "edge_health_url",
            "OPSHEALTH_EDGE_HEALTH_URL",
            "EDGE_HEALTH_URL",
            "NEXT_PUBLIC_EDGE_HEALTH_URL",
        ),
    )

    # Aggregation
    cache_window_ms: int = 30_000
    history_window_ms: int = 24 * 60 * 60 * 1000
    history_tail_size: int = 100
    coalesce_misses: bool = True

    # Probe classification
    probe_timeout_ms: int = 5_000
    degraded_latency_ms: int = 200
    down_latency_ms: Optional[int] = 1_000

    # argon2 hashes of bearer tokens allowed to read /health
    admin_token_hashes: list[str] = Field(default_factory=list)

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_path: str = "logs"
    log_to_file: bool = True

    # Metrics export, disabled when empty
    otlp_endpoint: str = ""
    otlp_insecure: bool = True
