"""
Logging bootstrap.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where records go and how they look (one JSON object per line).
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

from memory_ai.config import LOG_LEVEL

_EXTRA_FIELDS = ("provider", "operation", "attempt")


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in _EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger and return the package logger.

    Existing root handlers are replaced so calling this twice (e.g. on
    reload) does not duplicate output.
    """
    resolved = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(JsonLineFormatter())
    root.addHandler(handler)

    return logging.getLogger("memory_ai")
