"""Logging for the checklist API and the reference store.

Both `serve` entry points call `configure_logging` before uvicorn starts.
Every record goes to one stdout handler and carries the id of the request
being served (`-` outside a request), so an API line and the store calls it
caused can be matched up. uvicorn's loggers are pointed at the same handler;
HTTP client and SQL driver loggers are held at WARNING.
"""
from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Optional

from fleetcheck.http.request_id import get_request_id

LOG_LEVEL_ENV = "FLEETCHECK_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"

SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Build the dictConfig mapping for one stdout handler at `level`."""
    loggers: Dict[str, Dict[str, Any]] = {
        name: {"level": level, "handlers": ["stdout"], "propagate": False} for name in SERVER_LOGGERS
    }
    loggers.update({name: {"level": "WARNING"} for name in QUIET_LOGGERS})
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {"checklist": {"format": LOG_FORMAT}},
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "checklist",
                "filters": ["request_id"],
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["stdout"]},
        "loggers": loggers,
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once; later calls are no-ops.

    `level` falls back to FLEETCHECK_LOG_LEVEL, then INFO.
    """
    if logging.getLogger().handlers:
        return
    dictConfig(logging_config((level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()))


__all__ = ["RequestIdFilter", "configure_logging", "logging_config"]
