"""
Rule repositories for the markup engine.

Each repository turns some rule source into a `RuleSnapshot`. Use
`build_repository` to pick one by name, the way the CLI does.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

from markup_engine.config import get_settings
from markup_engine.repository.abstract import RuleRepository, build_snapshot
from markup_engine.repository.json_file import JsonFileRuleRepository
from markup_engine.repository.memory import InMemoryRuleRepository
from markup_engine.repository.postgres import PostgresRuleRepository


def _repository_factories() -> Dict[str, Callable[[Optional[str]], RuleRepository]]:
    """Registry of rule sources selectable by name."""
    return {
        "json": lambda source: JsonFileRuleRepository(
            Path(source) if source else get_settings().rules_path
        ),
        "postgres": lambda source: PostgresRuleRepository(dsn=source),
    }


def available_repositories() -> List[str]:
    """List available rule source names."""
    return sorted(_repository_factories().keys())


def build_repository(kind: Optional[str] = None, source: Optional[str] = None) -> RuleRepository:
    """
    Build a repository by name.

    Parameters
    ----------
    kind : str, optional
        Source name ("json" or "postgres"); defaults to settings.rules_source.
    source : str, optional
        File path for "json" or DSN for "postgres"; defaults come from settings.
    """
    name = kind or get_settings().rules_source
    factories = _repository_factories()
    if name not in factories:
        raise ValueError(f"Unknown rule source '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name](source)


__all__ = [
    "RuleRepository",
    "build_snapshot",
    "InMemoryRuleRepository",
    "JsonFileRuleRepository",
    "PostgresRuleRepository",
    "available_repositories",
    "build_repository",
]
