"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

_LOGGING_INITIALISED = False

INDEXER_LOG = "indexer.log"
ERROR_LOG = "error.log"


def default_log_dir() -> Path:
    env_root = os.environ.get("MACHINE_INDEX_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = log_dir or default_log_dir()
    error_log = log_dir / ERROR_LOG
    indexer_log = log_dir / INDEXER_LOG
    log_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    indexer_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.json.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "indexer_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(indexer_log),
                        "formatter": "plain",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                    },
                },
                "loggers": {
                    "machine_index": {
                        "handlers": ["console", "indexer_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("machine_index")


@contextmanager
def time_track(logger: structlog.BoundLogger, stage: str) -> Iterator[None]:
    """Log how long the wrapped block took, at debug level."""

    start = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("stage_timing", stage=stage, elapsed=round(time.perf_counter() - start, 3))


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = ["configure_logging", "default_log_dir", "tail_log", "time_track"]
