# =============================================================================
# pos_core/logging/config.py
# Logging Configuration for the Vitana POS
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Iterable, Optional, Union


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(threadName)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")

# Polled constantly by the sync worker and the connection monitor
NOISY_LOGGERS = ("urllib3", "requests", "streamlit")


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """Accept a level number or a name such as ``"debug"`` (POS_LOG_LEVEL)."""
    if level is None or level == "":
        return default
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else default


def setup_logging(
    level: Union[int, str, None] = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    log_dir: Optional[Path] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Level number or name (default: INFO)
        log_to_file: Also write to ``{log_dir}/pos_YYYY-MM-DD.log``
        log_filename: Override the dated file name
        log_dir: Directory for the log file (default: ./logs)
        quiet: Loggers capped at WARNING
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        directory = Path(log_dir) if log_dir else LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        filename = log_filename or f"pos_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(directory / filename, encoding="utf-8"))

    logging.basicConfig(
        level=resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("pos_core").info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Usage:
        from pos_core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Sale recorded")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Time a block and log its start, end or failure.

    Usage:
        with LogContext(logger, "Syncing 3 operations") as ctx:
            ...
        ctx.elapsed  # seconds
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[float] = None
        self.elapsed: Optional[float] = None

    def __enter__(self) -> "LogContext":
        self.start_time = time.perf_counter()
        self.logger.log(self.level, f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.log(self.level, f"{self.operation}... completed ({self.elapsed:.2f}s)")
        else:
            self.logger.error(
                f"{self.operation}... failed ({self.elapsed:.2f}s): {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
