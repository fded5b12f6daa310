"""
PostgreSQL rule repository.

Reads the marketplace `markups` and `markup_tiers` tables in a single
connection so rules and tiers come from the same moment. Transient
connection errors are retried by the connection factory; whatever still
fails surfaces as `RepositoryError`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg.rows import dict_row

from markup_engine.config import get_settings
from markup_engine.domain.errors import RepositoryError
from markup_engine.domain.models import RuleSnapshot
from markup_engine.infrastructure.db_factory import (
    PoolManager,
    apply_statement_timeout,
    get_sync_connection,
)
from markup_engine.repository.abstract import RuleRepository, build_snapshot
from markup_engine.utils.logging import get_logger

log = get_logger(__name__)

RULES_SQL = """
    SELECT id, name, type, target_id, markup_type, markup_value, is_active,
           priority, start_date, end_date, compound_strategy, created_at
    FROM markups
    ORDER BY priority DESC, created_at DESC;
"""

TIERS_SQL = """
    SELECT id, markup_id, min_quantity, max_quantity, markup_value
    FROM markup_tiers
    ORDER BY markup_id, min_quantity;
"""


class PostgresRuleRepository(RuleRepository):
    """
    Fetch rules and tiers from PostgreSQL.

    Parameters
    ----------
    dsn : str, optional
        Connection string; defaults to the DSN built from settings. Ignored
        when `use_pool` is set (the shared pool has its own DSN).
    use_pool : bool
        Borrow a connection from the shared PoolManager pool instead of
        opening a dedicated one.
    statement_timeout_ms : int, optional
        Per-statement timeout; defaults to settings.db_statement_timeout_ms.
    """

    name: str = "postgres"

    def __init__(
        self,
        dsn: Optional[str] = None,
        use_pool: bool = False,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        self._dsn = dsn
        self._use_pool = use_pool
        self._timeout_ms = (
            statement_timeout_ms
            if statement_timeout_ms is not None
            else get_settings().db_statement_timeout_ms
        )

    @contextmanager
    def _connection(self) -> Generator[psycopg.Connection, None, None]:
        if self._use_pool:
            with PoolManager().connection() as conn:
                yield conn
        else:
            with get_sync_connection(self._dsn) as conn:
                yield conn

    def fetch_snapshot(self) -> RuleSnapshot:
        try:
            with self._connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    apply_statement_timeout(cur, self._timeout_ms)
                    cur.execute(RULES_SQL)
                    rule_rows = cur.fetchall()
                    cur.execute(TIERS_SQL)
                    tier_rows = cur.fetchall()
        except psycopg.Error as exc:
            log.exception("Rule fetch failed", extra={"source": self.name})
            raise RepositoryError(f"Could not read pricing rules: {exc}") from exc

        snapshot = build_snapshot(rule_rows, tier_rows, source=self.name)
        log.info(
            "Rules loaded",
            extra={"source": self.name, "rules": len(snapshot.rules), "tiers": snapshot.tier_count},
        )
        return snapshot


__all__ = ["PostgresRuleRepository", "RULES_SQL", "TIERS_SQL"]
