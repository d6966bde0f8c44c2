"""
Cross-cutting utilities: structured logging and profiling.
"""

from tablescan.utils.logging import JsonFormatter, configure_logging, get_logger
from tablescan.utils.profiler import ProfileStats, profile_block

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
