"""
Logging setup for the API and sync jobs.

LOG_LEVEL picks the level (default INFO). LOG_JSON=1 switches to one JSON
object per line; ledger context passed via `extra=` (account_id, provenance,
route) becomes top-level keys so runs can be filtered per account.

Never log PII: user ids, emails and tokens stay out of messages and extras.
"""
import json
import logging
import os
import sys

CONTEXT_FIELDS = ("account_id", "provenance", "route")

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "alembic.runtime.migration")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _wants_json() -> bool:
    return os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")


def configure_logging() -> None:
    level = getattr(logging, (os.getenv("LOG_LEVEL") or "INFO").upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if _wants_json():
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    # configure_logging may run again on reload
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
