"""
Logging setup for the markup engine.

Pricing code logs with flat `extra=` fields (rule_id, product_id, final_price)
and the JSON formatter lifts them to top-level keys, so a skipped rule or a
failed catalogue row can be filtered on directly.

Usage:
    from markup_engine.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=True)
    log = get_logger(__name__)
    log.warning("Skipping markup", extra={"rule_id": 7, "value": "150"})
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

# psycopg_pool reports every connection it opens at INFO.
_NOISY_LOGGERS = ("psycopg", "psycopg.pool")


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as one JSON line, `extra=` fields included."""
    payload: Dict[str, Any] = {
        "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(
        (key, value)
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    )
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    # Decimal prices and datetimes render as their str form.
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
) -> None:
    """
    Configure root logging on stderr, keeping stdout free for `--json` output.

    Parameters
    ----------
    level : str
        Level name, any case.
    json_logs : bool
        Emit one JSON object per line instead of the console format.
    force : bool
        Replace handlers installed earlier; when False an already configured
        root logger is left alone.
    """
    if not force and logging.getLogger().handlers:
        return
    level = level.upper()
    pool_level = level if level == "DEBUG" else "WARNING"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "level": level,
                    "stream": "ext://sys.stderr",
                }
            },
            "loggers": {name: {"level": pool_level} for name in _NOISY_LOGGERS},
            "root": {"handlers": ["default"], "level": level},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
