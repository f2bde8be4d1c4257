"""Single-line JSON log output, enabled with ``SAGA_STRUCTURED_LOGGING=true``.

Request records emitted by :class:`RequestLoggingMiddleware` carry a
``request`` dict; its ``correlation_id`` and ``uid`` are lifted to the top
level so rejected and throttled calls can be grouped per member::

    {"timestamp": "...", "level": "WARNING", "logger": "saga_api.access",
     "message": "request completed", "correlation_id": "...", "uid": "u1",
     "request": {"path": "/api/ai/chat", "status_code": 429, ...}}
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

_LIFTED_REQUEST_FIELDS: tuple[str, ...] = ("correlation_id", "uid")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_data = getattr(record, "request", None)
        if isinstance(request_data, dict):
            for name in _LIFTED_REQUEST_FIELDS:
                if request_data.get(name) is not None:
                    entry[name] = request_data[name]
            entry["request"] = request_data

        if record.exc_info and record.exc_info[0] is not None:
            entry["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(entry, default=str, ensure_ascii=False)


def configure_structured_logging(level: int = logging.INFO) -> None:
    """Swap the root handlers for a single JSON stream handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
