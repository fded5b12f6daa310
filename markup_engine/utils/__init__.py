"""
Utilities package for the markup engine.

Exports shared helpers for logging and profiling. Keep this package
lightweight and free of pricing logic.
"""

from markup_engine.utils.logging import configure_logging, get_logger
from markup_engine.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
