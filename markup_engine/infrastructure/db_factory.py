"""
Database connection factory utilities for the markup engine.

Provides the PostgreSQL connections the rule repository reads markups and
tiers through: one-off connections with retry on transient failures, and a
shared pool owned by the PoolManager singleton, which is closed on exit.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Any, Generator, Optional

import psycopg
from psycopg import Connection, sql
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from markup_engine.config import build_dsn
from markup_engine.utils.logging import get_logger

log = get_logger(__name__)

TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


class PoolManager:
    """
    Thread-safe singleton for managing the shared connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(
        self, conninfo: Optional[str] = None, min_size: int = 1, max_size: int = 4
    ) -> ConnectionPool:
        """
        Get or create the connection pool.

        Parameters
        ----------
        conninfo : str, optional
            DSN override; defaults to the DSN built from settings.
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.
        """
        with self._lock:
            if self._pool is None:
                self._pool = ConnectionPool(
                    conninfo=conninfo or build_dsn(),
                    min_size=min_size,
                    max_size=max_size,
                    open=True,
                )
                log.info("Connection pool opened", extra={"min_size": min_size, "max_size": max_size})
            return self._pool

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a connection from the pool.

        Example
        -------
            with PoolManager().connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        pool = self.get_pool()
        with pool.connection() as conn:
            yield conn

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._pool is not None:
                pool, self._pool = self._pool, None
                pool.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors. Use this for one-off reads; prefer the pool for repeated use.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def apply_statement_timeout(cursor: Any, timeout_ms: int) -> None:
    """Bound every statement on the cursor's session to `timeout_ms`."""
    if timeout_ms <= 0:
        return
    cursor.execute(
        sql.SQL("SET statement_timeout = {}").format(sql.Literal(int(timeout_ms)))
    )


__all__ = [
    "PoolManager",
    "TRANSIENT_ERRORS",
    "apply_statement_timeout",
    "get_sync_connection",
]
