"""
Utilities package.

Provides helpers for reclaiming and reporting process memory.
"""

from utils.memory_manager import (
    ReclaimResult,
    describe_memory_usage,
    process_rss_mb,
    reclaim_memory,
)

__all__ = [
    "ReclaimResult",
    "describe_memory_usage",
    "process_rss_mb",
    "reclaim_memory",
]
