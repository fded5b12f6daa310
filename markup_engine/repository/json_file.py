"""
JSON file rule repository.

Reads a document shaped like the marketplace export:

    {
      "markups": [{"id": 1, "name": "...", "type": "site_wide", ...}],
      "markupTiers": [{"markupId": 1, "minQuantity": 1, ...}]
    }

`rules` / `tiers` are accepted as key aliases, and a rule may also carry its
tiers inline under a `tiers` list (the owning rule id is filled in).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from markup_engine.domain.errors import InvalidRuleDataError, RepositoryError
from markup_engine.domain.models import RuleSnapshot
from markup_engine.repository.abstract import RuleRepository, build_snapshot
from markup_engine.utils.logging import get_logger

log = get_logger(__name__)


def _first_key(document: Dict[str, Any], *keys: str) -> List[Any]:
    for key in keys:
        if key in document:
            value = document[key]
            if not isinstance(value, list):
                raise InvalidRuleDataError(f"'{key}' must be a list", details={"key": key})
            return value
    return []


def split_document(document: Any) -> Tuple[List[Any], List[Any]]:
    """Return (rule records, tier records) from a loaded rules document."""
    if not isinstance(document, dict):
        raise InvalidRuleDataError("Rules document must be a JSON object")
    rules: List[Any] = []
    tiers: List[Any] = list(_first_key(document, "markupTiers", "markup_tiers", "tiers"))
    for record in _first_key(document, "markups", "rules"):
        if isinstance(record, dict) and "tiers" in record:
            record = dict(record)
            for tier in record.pop("tiers") or []:
                tiers.append({"markupId": record.get("id"), **tier})
        rules.append(record)
    return rules, tiers


class JsonFileRuleRepository(RuleRepository):
    """Load rules and tiers from a JSON file on every fetch."""

    name: str = "json"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def fetch_snapshot(self) -> RuleSnapshot:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError as exc:
            raise RepositoryError(
                f"Rules file not found: {self.path}", details={"path": str(self.path)}
            ) from exc
        except json.JSONDecodeError as exc:
            raise InvalidRuleDataError(
                f"Rules file is not valid JSON: {exc.msg}",
                details={"path": str(self.path), "line": exc.lineno},
            ) from exc

        rules, tiers = split_document(document)
        snapshot = build_snapshot(rules, tiers, source=f"{self.name}:{self.path}")
        log.info(
            "Rules loaded",
            extra={"source": str(self.path), "rules": len(snapshot.rules), "tiers": snapshot.tier_count},
        )
        return snapshot


__all__ = ["JsonFileRuleRepository", "split_document"]
