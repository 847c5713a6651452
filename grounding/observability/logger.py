from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from grounding.settings import settings

from .tracing import get_correlation_id

_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}
_ENVELOPE_FIELDS = ("route", "latency_ms", "flags")
# httpx and httpcore log every request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")

_configured = False


def _record_correlation_id(record: logging.LogRecord) -> str | None:
    return getattr(record, "correlation_id", None) or get_correlation_id()


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields are flattened into it."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": _record_correlation_id(record),
        }
        for field_name in _ENVELOPE_FIELDS:
            payload[field_name] = getattr(record, field_name, None)
        payload["flags"] = payload["flags"] or {}

        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and key not in payload
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s [%(correlation)s] %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.correlation = _record_correlation_id(record) or "-"
        return super().format(record)


def setup_logging() -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if settings.log_format.lower() == "json" else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True
