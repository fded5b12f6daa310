from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from decimal import Decimal

import pytest

from markup_engine.utils.logging import JsonFormatter, _json_formatter, configure_logging

EXPECTED_RULES = 3


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    pool = logging.getLogger("psycopg.pool")
    saved = root.handlers[:], root.level, pool.level
    yield root
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    pool.setLevel(saved[2])


def test_json_formatter_promotes_extra_fields() -> None:
    record = _record()
    record.rules = EXPECTED_RULES
    record.source = "json:rules.json"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["rules"] == EXPECTED_RULES
    assert payload["source"] == "json:rules.json"
    assert "pathname" not in payload
    assert datetime.fromisoformat(payload["ts"]).tzinfo is not None


def test_json_formatter_stringifies_decimals_and_exceptions() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord(
            "test.logger", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )
    record.final_price = Decimal("12.30")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["final_price"] == "12.30"
    assert "ValueError: boom" in payload["exc_info"]


def test_configure_logging_respects_force_flag(restore_logging) -> None:
    root = restore_logging

    configure_logging(level="warning", json_logs=True)
    [handler] = root.handlers
    assert isinstance(handler.formatter, JsonFormatter)
    assert root.level == logging.WARNING

    configure_logging(level="DEBUG", json_logs=False, force=False)
    assert root.handlers == [handler]
    assert root.level == logging.WARNING


@pytest.mark.parametrize(
    ("level", "pool_level"), [("info", logging.WARNING), ("debug", logging.DEBUG)]
)
def test_configure_logging_quiets_connection_pool(restore_logging, level, pool_level) -> None:
    configure_logging(level=level)

    assert logging.getLogger("psycopg.pool").level == pool_level
