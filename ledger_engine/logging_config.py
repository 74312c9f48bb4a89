"""
Structured logging for the ledger engine.

Service modules log through `logging.getLogger(__name__)`; this module
attaches a JSON formatter to the `ledger_engine` logger so every record
under the package comes out as one JSON object per line. Structured fields
go in `extra=` and are copied into the output when present.
"""

import json
import logging
from datetime import datetime, timezone

LOGGER_NAME = "ledger_engine"

# Attributes every LogRecord has; anything else arrived through extra=
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Install the JSON handler on the package logger.

    Safe to call more than once: existing handlers are replaced rather than
    stacked, so reloading the app does not duplicate every line.
    """
    logger = logging.getLogger(LOGGER_NAME)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger
