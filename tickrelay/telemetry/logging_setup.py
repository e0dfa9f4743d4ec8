"""JSON logging for the relay.

Every line carries the pipeline context fields (``component``, ``channel``,
``symbol``, ``epoch``) so logs from the connection manager, the batcher and the
dispatcher can be joined on the same keys. Fields a record does not set are
written as ``null``.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict

ROOT_LOGGER_NAME = "tickrelay"
LOG_FILE_NAME = "relay_current.jsonl"
CONTEXT_FIELDS = ("channel", "symbol", "epoch")

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _component(logger_name: str) -> str:
    """``tickrelay.feed.stream`` -> ``feed.stream``; foreign loggers keep their name."""

    prefix = ROOT_LOGGER_NAME + "."
    return logger_name[len(prefix):] if logger_name.startswith(prefix) else logger_name


class JsonFormatter(logging.Formatter):
    """One JSON object per record: fixed header, pipeline context, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in _RESERVED
        }
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            payload[key] = extras.pop(key, None)
        for key, value in extras.items():
            if key in payload:
                continue
            payload[key] = value if _is_json(value) else repr(value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _is_json(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def configure_logging(
    *,
    log_dir: Path,
    level: str = "INFO",
    logger_name: str = ROOT_LOGGER_NAME,
    backup_days: int = 14,
) -> Logger:
    """Attach a midnight-rotating JSON file handler and a stderr handler.

    Module loggers (``tickrelay.feed.stream`` etc.) propagate into this one, so
    it is enough to call this once at start-up. Calling it again replaces the
    handlers instead of stacking them.
    """

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    formatter = JsonFormatter()

    file_handler = TimedRotatingFileHandler(log_file, when="midnight", backupCount=backup_days, encoding="utf-8", utc=True)
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level.upper())
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.propagate = False
    logger.debug("JSON logging configured", extra={"log_file": str(log_file), "backup_days": backup_days})
    return logger


__all__ = ["configure_logging", "JsonFormatter", "CONTEXT_FIELDS", "ROOT_LOGGER_NAME"]
