"""Logging setup for the voice journal backend.

Logs go to stdout as one JSON object per line unless ``VJ_LOG_FORMAT=text``.
``VJ_LOG_FILE`` adds a size-rotated file handler with the same formatting.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import orjson

_DEFAULT_LEVEL = os.environ.get("VJ_LOG_LEVEL", "INFO")
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_CONTEXT_PREFIX = "ctx_"

# chatty below WARNING during enrichment requests
_QUIET_LOGGERS = ("urllib3", "httpx", "keyring")


class JsonFormatter(logging.Formatter):
    """Render records as JSON.

    Extra attributes named ``ctx_*`` (``extra={"ctx_entry_id": entry.id}``)
    are copied into the payload under a ``context`` object.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        context = {
            key[len(_CONTEXT_PREFIX) :]: value
            for key, value in record.__dict__.items()
            if key.startswith(_CONTEXT_PREFIX)
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def _formatter(use_json: bool) -> logging.Formatter:
    return JsonFormatter() if use_json else logging.Formatter(_TEXT_FORMAT)


def configure_logging(
    level: str | int = _DEFAULT_LEVEL,
    use_json: bool | None = None,
    log_file: str | Path | None = None,
) -> None:
    """Install stdout (and optionally file) handlers on the root logger."""
    if use_json is None:
        use_json = os.environ.get("VJ_LOG_FORMAT", "json").lower() != "text"
    log_file = log_file or os.environ.get("VJ_LOG_FILE")

    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level)
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(_formatter(use_json))
    handlers: list[logging.Handler] = [stream]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
        rotating.setFormatter(_formatter(use_json))
        handlers.append(rotating)
    root.handlers = handlers
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "voice_journal") -> logging.Logger:
    """Return a named logger, configuring the root logger on first use."""
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger"]
