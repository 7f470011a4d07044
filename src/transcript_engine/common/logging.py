"""JSON-lines logging for Transcript-Engine.

Service code attaches request context through ``extra=``; any of
``CONTEXT_FIELDS`` present on a record is copied into the JSON line so a
request's submit, approval and storage events can be joined by ``request_id``.
"""

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ("request_id", "student_usn", "actor_ref", "document_ref")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """Send ``transcript_engine.*`` records to ``stream`` as JSON lines.

    Safe to call repeatedly; the level is updated and no second handler is added.
    """
    root = logging.getLogger("transcript_engine")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"transcript_engine.{name}")
