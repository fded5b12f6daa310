"""
Infrastructure package for the markup engine.

Centralizes database connectivity concerns (connection factory, pooling).
Keep this layer focused on I/O and resource management, decoupled from the
pricing pipeline.
"""

from markup_engine.infrastructure.db_factory import (
    PoolManager,
    apply_statement_timeout,
    get_sync_connection,
)

__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "get_sync_connection",
]
