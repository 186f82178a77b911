"""Structured logging helpers for mirroring runs."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

__all__ = ["JSONFormatter", "setup_logging"]

ROOT_LOGGER_NAME = "KBMirror"
_MANAGED_ATTR = "_kbmirror_managed"


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "book_id": getattr(record, "book_id", None),
            "uuid": getattr(record, "uuid", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(
    *,
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    max_log_size_mb: int = 20,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``KBMirror`` logger with a console handler and optional JSONL file.

    Calling it again replaces the handlers installed by the previous call.
    """

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_ATTR, False):
            logger.removeHandler(handler)
            if getattr(handler, "stream", None) not in (sys.stdout, sys.stderr):
                handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    setattr(stream_handler, _MANAGED_ATTR, True)
    logger.addHandler(stream_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            log_dir / f"kbmirror-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        setattr(file_handler, _MANAGED_ATTR, True)
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
