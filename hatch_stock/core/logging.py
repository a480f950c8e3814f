"""JSON log lines for the stock service.

Every record carries the request id and caller set by ``RequestIdMiddleware``.
Domain operations attach their fields through ``log_event`` so a removal or a
receipt is one searchable line, e.g.
``{"message": "order.received", "order_id": 12, "units": 48, ...}``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL is DEBUG.
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, object] = {
            "timestamp": stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, ctx_var in (("request_id", request_id_ctx_var), ("principal", principal_ctx_var)):
            value = ctx_var.get()
            if value:
                payload[key] = value
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update(extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str | int = "INFO") -> None:
    """Route the root logger through one JSON stream handler at ``level``."""

    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        resolved = logging.INFO
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(resolved)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(resolved if resolved <= logging.DEBUG else logging.WARNING)


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **data: object) -> None:
    logger.log(level, event, extra={"extra_data": data})


__all__ = ["JsonLogFormatter", "configure_logging", "log_event"]
