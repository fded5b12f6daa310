from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from markup_engine.domain.errors import InvalidRuleDataError, RepositoryError
from markup_engine.repository import (
    InMemoryRuleRepository,
    JsonFileRuleRepository,
    PostgresRuleRepository,
    RuleRepository,
    available_repositories,
    build_repository,
)
from markup_engine.repository.json_file import split_document


def test_available_repositories() -> None:
    assert available_repositories() == ["json", "postgres"]


def test_json_repository_loads_snapshot(rules_file: Path) -> None:
    repository = JsonFileRuleRepository(rules_file)

    snapshot = repository.fetch_snapshot()

    assert isinstance(repository, RuleRepository)
    assert [rule.id for rule in snapshot.rules] == [2, 3, 1]
    assert [tier.min_quantity for tier in snapshot.tiers_for(3)] == [1, 11, 50]
    assert snapshot.tier_count == 3
    assert snapshot.source == f"json:{rules_file}"


def test_json_repository_missing_file(tmp_path: Path) -> None:
    with pytest.raises(RepositoryError) as excinfo:
        JsonFileRuleRepository(tmp_path / "absent.json").fetch_snapshot()

    assert excinfo.value.code == "REPOSITORY_UNAVAILABLE"


def test_json_repository_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidRuleDataError) as excinfo:
        JsonFileRuleRepository(path).fetch_snapshot()

    assert excinfo.value.details["line"] == 1


def test_json_repository_bad_record_reports_index(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"markups": [{"id": 1, "name": "broken"}]}), encoding="utf-8")

    with pytest.raises(InvalidRuleDataError) as excinfo:
        JsonFileRuleRepository(path).fetch_snapshot()

    assert excinfo.value.details["rule_index"] == 0


def test_split_document_accepts_inline_tiers_and_aliases() -> None:
    rules, tiers = split_document(
        {
            "rules": [
                {"id": 5, "name": "Inline", "tiers": [{"minQuantity": 1, "markupValue": 3}]},
            ],
            "tiers": [{"markupId": 6, "minQuantity": 2, "markupValue": 1}],
        }
    )

    assert rules == [{"id": 5, "name": "Inline"}]
    assert tiers == [
        {"markupId": 6, "minQuantity": 2, "markupValue": 1},
        {"markupId": 5, "minQuantity": 1, "markupValue": 3},
    ]


@pytest.mark.parametrize("document", [[], {"markups": {"id": 1}}])
def test_split_document_rejects_bad_shapes(document) -> None:
    with pytest.raises(InvalidRuleDataError):
        split_document(document)


def test_memory_repository_orders_rules(rules_document) -> None:
    repository = InMemoryRuleRepository(rules_document["markups"], rules_document["markupTiers"])

    snapshot = repository.fetch_snapshot()

    assert snapshot.source == "memory"
    assert [rule.priority for rule in snapshot.rules] == [5, 3, 0]
    assert snapshot.tiers_for(3)[-1].value == Decimal("10")
    assert repository.fetch_snapshot() is snapshot


def test_build_repository_defaults_to_settings(monkeypatch, rules_file: Path) -> None:
    monkeypatch.setenv("RULES_SOURCE", "json")
    monkeypatch.setenv("RULES_PATH", str(rules_file))

    repository = build_repository()

    assert isinstance(repository, JsonFileRuleRepository)
    assert repository.path == rules_file


def test_build_repository_by_name() -> None:
    repository = build_repository("postgres", "postgresql://u:p@db:5432/x")

    assert isinstance(repository, PostgresRuleRepository)
    assert build_repository("json", "other.json").path == Path("other.json")


def test_build_repository_unknown_source() -> None:
    with pytest.raises(ValueError, match="Unknown rule source 'redis'"):
        build_repository("redis")
