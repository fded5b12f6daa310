"""
Pytest configuration for the markup engine.

Provides fixtures for:
- A pinned evaluation instant and rule/tier factories
- A sample rules document written to disk
- Settings and database connection management for integration tests
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Iterator

import psycopg
import pytest

from markup_engine.config import Settings, get_settings
from markup_engine.domain.models import (
    CombineMode,
    PricingRule,
    PricingTier,
    Scope,
    ValueKind,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Settings are cached process-wide; reset around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_rule() -> Callable[..., PricingRule]:
    """Factory for rules with sensible defaults; override any field by keyword."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: Any) -> PricingRule:
        rule_id = overrides.pop("id", None) or next(counter)
        fields: Dict[str, Any] = {
            "id": rule_id,
            "name": f"rule-{rule_id}",
            "scope": Scope.SITE_WIDE,
            "target_key": None,
            "value_kind": ValueKind.PERCENTAGE,
            "value": Decimal("10"),
            "active": True,
            "priority": 0,
            "combine_mode": CombineMode.REPLACE,
            "created_at": NOW - timedelta(days=30),
        }
        fields.update(overrides)
        return PricingRule(**fields)

    return _make


@pytest.fixture
def make_tier() -> Callable[..., PricingTier]:
    def _make(rule_id: int, min_quantity: int, max_quantity: int | None, value: Any) -> PricingTier:
        return PricingTier(
            rule_id=rule_id,
            min_quantity=min_quantity,
            max_quantity=max_quantity,
            value=Decimal(str(value)),
        )

    return _make


@pytest.fixture
def rules_document() -> Dict[str, Any]:
    """Rules in the marketplace export shape (camelCase storage names)."""
    return {
        "markups": [
            {
                "id": 1,
                "name": "Site-wide Margin",
                "type": "site_wide",
                "targetId": None,
                "markupType": "percentage",
                "markupValue": 10,
                "isActive": True,
                "priority": 0,
                "compoundStrategy": "replace",
                "createdAt": "2024-01-15T10:00:00.000Z",
            },
            {
                "id": 2,
                "name": "Flower Premium",
                "type": "category",
                "targetId": "Flower",
                "markupType": "fixed_amount",
                "markupValue": 5,
                "isActive": True,
                "priority": 5,
                "compoundStrategy": "add",
                "createdAt": "2024-01-16T10:00:00.000Z",
            },
            {
                "id": 3,
                "name": "Cartridge Volume",
                "type": "category",
                "targetId": "Cartridges",
                "markupType": "percentage",
                "markupValue": 20,
                "isActive": True,
                "priority": 3,
                "compoundStrategy": "add",
                "createdAt": "2024-01-17T10:00:00.000Z",
            },
        ],
        "markupTiers": [
            {"id": 1, "markupId": 3, "minQuantity": 1, "maxQuantity": 10, "markupValue": 20},
            {"id": 2, "markupId": 3, "minQuantity": 11, "maxQuantity": 49, "markupValue": 14},
            {"id": 3, "markupId": 3, "minQuantity": 50, "maxQuantity": None, "markupValue": 10},
        ],
    }


@pytest.fixture
def rules_file(tmp_path: Path, rules_document: Dict[str, Any]) -> Path:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(rules_document), encoding="utf-8")
    return path


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "marketplace"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()
