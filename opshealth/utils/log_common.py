import os
import sys
import tempfile
from pathlib import Path
from typing import Optional, Union

import loguru
import loguru._logger
from memoization import CachingAlgorithmFlag, cached

from ..schemas.logging import LogLevel

LOG_LEVEL_ENV = "OPSHEALTH_LOG_LEVEL"

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


class LogRotationConfig:
    """Size/time rotation and compression settings for file sinks."""

    def __init__(
        self,
        max_file_size: str = "10 MB",
        backup_count: int = 5,
        compression: Optional[str] = "gz",
        rotation_time: Optional[str] = None,
    ):
        """
        Initialize log rotation configuration.

        Args:
            max_file_size: Maximum size before rotation (e.g., "10 MB", "50 KB")
            backup_count: Number of rotated files to keep
            compression: Compression format for old logs ("gz", "zip", or None)
            rotation_time: Time-based rotation (e.g., "daily", "1 hour"), wins over size

        """
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.compression = compression
        self.rotation_time = rotation_time

    @property
    def rotation(self) -> str:
        return self.rotation_time or self.max_file_size


def resolve_log_level(level: Optional[Union[str, int, LogLevel]] = None) -> LogLevel:
    """
    Pick the effective level.

    An explicit ``level`` wins, then the ``OPSHEALTH_LOG_LEVEL`` environment
    variable, then INFO. An invalid environment value falls back to INFO.
    """
    if level is not None:
        return LogLevel.from_string(level)

    env_level = os.getenv(LOG_LEVEL_ENV)
    if env_level:
        try:
            return LogLevel.from_string(env_level)
        except ValueError:
            print(
                f"Warning: Invalid log level '{env_level}' in {LOG_LEVEL_ENV}, using INFO"
            )
    return LogLevel.INFO


def _setup_log_directory(log_path: Path) -> Path:
    """Create the log directory, falling back to the temp dir if it is not writable."""
    try:
        log_path.mkdir(parents=True, exist_ok=True)
        test_file = log_path / ".write_test"
        test_file.touch()
        test_file.unlink()
        return log_path
    except OSError:
        fallback_path = Path(tempfile.gettempdir()) / "opshealth_logs"
        fallback_path.mkdir(parents=True, exist_ok=True)
        print(f"Warning: Cannot write to {log_path}, using fallback: {fallback_path}")
        return fallback_path


def _prepare_log_file_path(log_file: str, base_log_path: Path) -> Path:
    if not log_file.endswith(".log"):
        log_file = f"{log_file}.log"

    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = base_log_path / log_path

    log_path.parent.mkdir(parents=True, exist_ok=True)
    return log_path


@cached(max_size=100, algorithm=CachingAlgorithmFlag.LRU)
def build_logger(
    log_file: str = "opshealth",
    rotation_config: Optional[LogRotationConfig] = None,
    format_string: Optional[str] = None,
    level: Optional[Union[str, int, LogLevel]] = None,
    log_path: Optional[Union[str, Path]] = None,
    log_to_file: bool = True,
) -> loguru._logger.Logger:
    """
    Build the process logger with a console sink and a rotating file sink.

    Calls are memoized, so modules asking for the same logger share one set of
    handlers instead of stacking duplicates.

    Args:
        log_file: Name of the log file (without extension) or full path
        rotation_config: Rotation and compression for the file sink
        format_string: Custom loguru format string
        level: Minimum level; defaults to OPSHEALTH_LOG_LEVEL, then INFO
        log_path: Base directory for log files (defaults to ./logs)
        log_to_file: Disable to keep only the console sink

    Returns:
        loguru.Logger: Configured logger instance

    Raises:
        ValueError: If log_file is empty

    Example:
        ```python
        from opshealth.utils.log_common import build_logger

        logger = build_logger("healthcheck")
        logger.info("Health monitor started")
        ```

    """
    if not log_file or not isinstance(log_file, str):
        raise ValueError("log_file must be a non-empty string")

    effective_level = resolve_log_level(level)
    rotation_config = rotation_config or LogRotationConfig()
    format_string = format_string or DEFAULT_FORMAT

    logger = loguru.logger
    logger.remove()
    logger.add(
        sys.stderr,
        format=format_string,
        level=effective_level.name,
        colorize=True,
    )

    if log_to_file:
        if log_path is None:
            log_path = Path.cwd() / "logs"
        base_path = _setup_log_directory(Path(log_path))
        logger.add(
            _prepare_log_file_path(log_file, base_path),
            format=format_string,
            level=effective_level.name,
            rotation=rotation_config.rotation,
            retention=rotation_config.backup_count,
            compression=rotation_config.compression,
            colorize=False,
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    return logger
