"""Service probes, the concurrent probe runner and the cached health aggregator."""

from .aggregator import HealthAggregator
from .base import HealthProbeBase, ProbeConfig, ProbeFailure
from .history import HistoryWindow
from .registry import build_default_probes
from .runner import ProbeRunner

__all__ = [
    "HealthAggregator",
    "HealthProbeBase",
    "HistoryWindow",
    "ProbeConfig",
    "ProbeFailure",
    "ProbeRunner",
    "build_default_probes",
]
