import time
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Awaitable, Callable, Optional

from ...schemas.health import ServiceId
from ..base import HealthProbeBase, ProbeConfig

StatusCall = Callable[[], Awaitable[Any]]

_STARTED_AT = time.time()


def _package_version() -> str:
    try:
        return version("opshealth")
    except PackageNotFoundError:
        return "0.0.0"


async def internal_status() -> dict[str, Any]:
    """The application's own status procedure."""
    return {
        "status": "ok",
        "version": _package_version(),
        "uptimeSeconds": int(time.time() - _STARTED_AT),
    }


class ApiProbe(HealthProbeBase):
    service_id = ServiceId.API
    label = "Internal API"

    def __init__(self, status_call: Optional[StatusCall] = None):  # noqa: D107
        self.status_call = status_call or internal_status

    async def check(self, config: ProbeConfig):
        """Invoke the internal status procedure through the RPC layer."""
        return await self.status_call()
