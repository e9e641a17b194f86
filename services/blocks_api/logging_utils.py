"""Logging setup for the Blocks API."""

from __future__ import annotations

import json
import logging

from .settings import Settings

LOGGER_NAME = "uvicorn.error"

_EXTRA_FIELDS = (
    "request_id",
    "tenant_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "error_code",
)


class JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


def configure_logging(settings: Settings) -> logging.Logger:
    handler = logging.StreamHandler()
    if settings.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logging.basicConfig(handlers=[handler], level=settings.log_level, force=True)
    return logging.getLogger(LOGGER_NAME)
