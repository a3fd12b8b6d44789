"""
Memory management utilities.

Reclaims Python-side garbage after native model resources are released
and measures how much resident memory the release actually gave back.
"""

from __future__ import annotations

import gc
import logging
from typing import NamedTuple, Optional

import psutil

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class ReclaimResult(NamedTuple):
    """Outcome of a reclaim pass (RSS values are None when unreadable)."""
    collected: int
    rss_before_mb: Optional[float]
    rss_after_mb: Optional[float]

    @property
    def freed_mb(self) -> Optional[float]:
        if self.rss_before_mb is None or self.rss_after_mb is None:
            return None
        return self.rss_before_mb - self.rss_after_mb


def process_rss_mb() -> Optional[float]:
    """
    Resident set size of this process.

    Returns:
        RSS in MB, or None if psutil cannot read it.
    """
    try:
        return psutil.Process().memory_info().rss / BYTES_PER_MB
    except psutil.Error as e:
        logger.debug(f"Failed to read process RSS: {e}")
        return None


def reclaim_memory() -> ReclaimResult:
    """
    Run a full garbage collection and measure RSS around it.

    Returns:
        ReclaimResult with the collected object count and RSS readings.
    """
    rss_before_mb = process_rss_mb()
    collected = gc.collect()
    result = ReclaimResult(collected, rss_before_mb, process_rss_mb())
    logger.debug(
        f"Reclaimed {collected} objects, "
        f"freed={_format_mb(result.freed_mb)}, rss={_format_mb(result.rss_after_mb)}"
    )
    return result


def describe_memory_usage() -> str:
    """
    Short human-readable memory summary for log lines.

    Returns:
        e.g. 'rss=512MB', or 'rss=unknown'.
    """
    return f"rss={_format_mb(process_rss_mb())}"


def _format_mb(value: Optional[float]) -> str:
    return "unknown" if value is None else f"{value:.0f}MB"
