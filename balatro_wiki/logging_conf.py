"""Logging configuration: structlog events rendered as JSON by stdlib handlers."""

from __future__ import annotations

import logging.config
from pathlib import Path
from typing import Any

import structlog

_LOGGING_INITIALISED = False
LOGGER_NAME = "balatro_wiki"
APP_LOG = "balatro-wiki.log"
ERROR_LOG = "error.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUPS = 3


def _default_log_dir() -> Path:
    return Path("~/.cache/balatro-wiki/logs").expanduser()


def _rotating(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "filename": str(path),
        "maxBytes": LOG_MAX_BYTES,
        "backupCount": LOG_BACKUPS,
        "encoding": "utf-8",
        "formatter": "json",
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Route structlog through stdlib logging once per process.

    Files under ``log_dir`` always receive INFO and above. The console
    handler writes to stderr and stays quiet below WARNING unless
    ``verbose`` is set.
    """

    global _LOGGING_INITIALISED
    log_dir = log_dir or _default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    if not _LOGGING_INITIALISED:
        threshold = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    # stdout carries command output
                    "stderr": {
                        "class": "logging.StreamHandler",
                        "stream": "ext://sys.stderr",
                        "level": "DEBUG" if verbose else "WARNING",
                        "formatter": "json",
                    },
                    "app_file": _rotating(log_dir / APP_LOG, threshold),
                    "error_file": _rotating(log_dir / ERROR_LOG, "ERROR"),
                },
                "loggers": {
                    LOGGER_NAME: {
                        "handlers": ["stderr", "app_file", "error_file"],
                        "level": threshold,
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
    return structlog.get_logger(LOGGER_NAME)


def component_logger(component: str) -> structlog.BoundLogger:
    """Logger for one part of the tool (``fetcher``, ``store``...)."""

    return structlog.get_logger(f"{LOGGER_NAME}.{component}").bind(component=component)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = ["APP_LOG", "LOGGER_NAME", "component_logger", "configure_logging", "tail_log"]
