from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from flask import Flask, has_request_context, request
from flask_login import current_user

LOGGER_NAME = "app"

_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class RequestContextFilter(logging.Filter):
    """Add request method, path and authenticated user id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_method = request.method
            record.request_path = request.path
            record.user_id = current_user.get_id() if current_user.is_authenticated else "-"
        else:
            record.request_method = "SYSTEM"
            record.request_path = "-"
            record.user_id = "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(app: Flask) -> logging.Logger:
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    log_format = str(app.config.get("LOG_FORMAT", "development")).lower()

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s [%(name)s] %(request_method)s %(request_path)s "
                "user=%(user_id)s - %(message)s"
            )
        )

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level, logging.INFO))
    return logger
