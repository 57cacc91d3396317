import inspect
import time
from functools import wraps
from typing import Callable, Optional

from .log_common import build_logger


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(round(time.time() * 1000))


def elapsed_ms(start: float) -> int:
    """Milliseconds since a ``time.perf_counter()`` reading, never negative."""
    return max(0, int(round((time.perf_counter() - start) * 1000)))


def _log_time(f, logger, level: str, tag, threshold_warning, elapsed: float):
    module = inspect.getmodule(f)
    modname = module.__name__ if module else "unknown"
    qualname = getattr(f, "__qualname__", f.__name__)

    if tag:
        if isinstance(tag, list | tuple):
            tag_text = "[" + "|".join(map(str, tag)) + "] "
        else:
            tag_text = f"[{tag}] "
    else:
        tag_text = ""

    msg = f"[{elapsed:7.3f}s] {tag_text}{modname}.{qualname}"

    if threshold_warning and elapsed > threshold_warning:
        logger.warning(f"{msg} exceeded {threshold_warning}s")
    else:
        getattr(logger, level, logger.info)(msg)


def measure_time(
    func=None,
    *,
    logger=None,
    level: str = "debug",
    threshold_warning: Optional[float] = None,
    metric_collector: Optional[Callable[[str, float], None]] = None,
    tag: Optional[str] = None,
):
    """
    Timing decorator for sync and async callables.

    Args:
        logger: Optional logger; defaults to the package logger, resolved on first call.
        level: Log level for normal timing logs.
        threshold_warning: Log a warning if elapsed time exceeds this many seconds.
        metric_collector: Receives (qualname, elapsed_seconds) after every call.
        tag: Optional label for grouping logs (e.g., "health").

    """

    def decorator(f):
        def _finish(start: float):
            elapsed = time.perf_counter() - start
            active_logger = logger or build_logger()
            _log_time(f, active_logger, level, tag, threshold_warning, elapsed)
            if metric_collector:
                try:
                    metric_collector(f.__qualname__, elapsed)
                except Exception as e:
                    active_logger.warning(f"[timing] Metric collector failed: {e}")

        if inspect.iscoroutinefunction(f):

            @wraps(f)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await f(*args, **kwargs)
                finally:
                    _finish(start)

            return async_wrapper

        @wraps(f)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return f(*args, **kwargs)
            finally:
                _finish(start)

        return sync_wrapper

    return decorator if func is None else decorator(func)
