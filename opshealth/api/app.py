from contextlib import asynccontextmanager
from typing import Optional

import loguru._logger
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..auth.auth import TokenAdminGuard, Unauthorized
from ..health.aggregator import HealthAggregator
from ..health.history import HistoryWindow
from ..health.registry import build_default_probes, probe_config
from ..health.runner import ProbeRunner
from ..metric.otel import setup_metrics
from ..schemas.settings import HealthSettings
from ..utils.log_common import build_logger

FAILURE_MESSAGE = "Failed to fetch health status"

bearer = HTTPBearer(auto_error=False)


def build_aggregator(
    settings: HealthSettings, logger: Optional[loguru._logger.Logger] = None
) -> HealthAggregator:
    runner = ProbeRunner(
        build_default_probes(settings), config=probe_config(settings), logger=logger
    )
    return HealthAggregator(
        runner=runner,
        guard=TokenAdminGuard(settings.admin_token_hashes),
        cache_window_ms=settings.cache_window_ms,
        history=HistoryWindow(settings.history_window_ms),
        history_tail_size=settings.history_tail_size,
        coalesce_misses=settings.coalesce_misses,
        logger=logger,
    )


def create_app(
    settings: Optional[HealthSettings] = None,
    aggregator: Optional[HealthAggregator] = None,
) -> FastAPI:
    """
    Build the FastAPI app serving the admin health endpoint.

    Usage:
        ```python
        app = create_app()  # settings from OPSHEALTH_* env vars

        # GET /health       -> HealthResponse JSON, admin bearer token required
        # GET /health/live  -> {"status": "alive"}
        ```
    """
    settings = settings or HealthSettings()
    logger = build_logger(
        level=settings.log_level,
        log_path=settings.log_path,
        log_to_file=settings.log_to_file,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.otlp_endpoint:
            setup_metrics("opshealth", settings.otlp_endpoint, settings.otlp_insecure)
        owned = aggregator is None
        app.state.aggregator = aggregator or build_aggregator(settings, logger)
        logger.info("Health aggregator ready")
        yield
        if owned:
            await app.state.aggregator.close()

    app = FastAPI(title="opshealth", lifespan=lifespan)

    @app.get("/health/live")
    async def live():
        return {"status": "alive"}

    @app.get("/health")
    async def health(
        request: Request,
        auth: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ):
        token = auth.credentials if auth else None
        try:
            payload = await request.app.state.aggregator.get_status(token)
        except Unauthorized as e:
            logger.warning(f"Rejected health request: {e}")
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})
        except Exception:
            logger.exception("Health status aggregation failed")
            return JSONResponse(status_code=500, content={"error": FAILURE_MESSAGE})
        return JSONResponse(content=payload.model_dump(mode="json", by_alias=True))

    return app


def serve() -> None:
    """Run the app with uvicorn using OPSHEALTH_* settings."""
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
