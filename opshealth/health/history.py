import math
from typing import Dict, Iterable, List

from ..schemas.health import HealthStatus, HistoryEntry, ServiceId

DAY_MS = 24 * 60 * 60 * 1000


def round_percent(value: float) -> float:
    """Round a percentage half up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def percent_from_ratio(ratio: float) -> float:
    """Turn a 0..1 ratio into a percentage with two decimals, rounding half up."""
    return math.floor(ratio * 10000 + 0.5) / 100


class HistoryWindow:
    """
    Append-only probe history over a rolling window.

    Entries older than the window are dropped whenever the window is read,
    so memory stays bounded by the probe rate times the window length.
    """

    def __init__(self, window_ms: int = DAY_MS):  # noqa: D107
        self.window_ms = window_ms
        self._entries: List[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def extend(self, entries: Iterable[HistoryEntry]) -> None:
        self._entries.extend(entries)

    def prune(self, now: int) -> None:
        cutoff = now - self.window_ms
        self._entries = [e for e in self._entries if e.timestamp >= cutoff]

    def uptime(self, service_ids: Iterable[ServiceId], now: int) -> Dict[ServiceId, float]:
        """
        Percentage of non-down entries per service inside the window.

        A service without observations counts as fully up.
        """
        self.prune(now)

        up: Dict[ServiceId, int] = {}
        total: Dict[ServiceId, int] = {}
        for entry in self._entries:
            total[entry.service_id] = total.get(entry.service_id, 0) + 1
            if entry.status != HealthStatus.DOWN:
                up[entry.service_id] = up.get(entry.service_id, 0) + 1

        uptime = {}
        for service_id in service_ids:
            count = total.get(service_id, 0)
            if count:
                uptime[service_id] = percent_from_ratio(up.get(service_id, 0) / count)
            else:
                uptime[service_id] = 100.0
        return uptime

    def tail(self, size: int) -> List[HistoryEntry]:
        if size <= 0:
            return []
        return self._entries[-size:]
