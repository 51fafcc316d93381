"""Structured logging for the ``lavaroute`` logger tree."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Mapping, Optional

__all__ = ["JsonFormatter", "configure_json_logging"]

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    """Render one JSON object per record.

    ``extra=`` values are nested under ``"context"`` so they can never shadow
    the fixed keys; ``static`` fields (a process label, a shard id) are added
    to every line.
    """

    def __init__(self, static: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__()
        self.static = dict(static or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
            **self.static,
        }
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        }
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


def configure_json_logging(
    level: int = logging.INFO,
    *,
    stream: Optional[IO[str]] = None,
    static: Optional[Mapping[str, Any]] = None,
) -> logging.Handler:
    """Attach a JSON handler to the ``lavaroute`` logger and return it.

    Only the package's own logger tree is touched; the host keeps control of
    the root logger.
    """

    package_logger = logging.getLogger("lavaroute")
    for existing in list(package_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            package_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter(static))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return handler
