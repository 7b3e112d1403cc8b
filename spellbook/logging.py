"""Structured logging helpers: JSON lines with context."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any

LOG_LEVEL_ENV = "SPELLBOOK_LOG_LEVEL"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _level_from_env() -> str:
    level = os.environ.get(LOG_LEVEL_ENV, "INFO").strip().upper()
    # Unknown names fall back to INFO
    return level if level in logging.getLevelNamesMapping() else "INFO"


def get_logger(name: str = "spellbook") -> logging.Logger:
    """Return *name* with a single JSON stderr handler attached.

    Child loggers (``spellbook.storage`` and friends) propagate to the
    ``spellbook`` root, so only the root gets a handler.
    """
    root = logging.getLogger("spellbook")
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.setLevel(_level_from_env())
    return logging.getLogger(name)
