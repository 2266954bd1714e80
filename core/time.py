# PATH: core/time.py
"""
Time utilities.

Clock sources and freshness helpers. All ages in the system are computed
in integer milliseconds from a ClockSource so tests can drive time.
"""

import time
from datetime import date, datetime, timezone
from typing import Optional


class SystemClock:
    """Wall-clock ClockSource backed by time.time()."""

    def now_ms(self) -> int:
        return now_ms()


class FakeClock:
    """Manually advanced ClockSource for tests and replays."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._now_ms = start_ms

    def now_ms(self) -> int:
        return self._now_ms

    def advance(self, ms: int) -> None:
        self._now_ms += ms

    def set(self, ms: int) -> None:
        self._now_ms = ms


def now_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def ms_to_iso(timestamp_ms: int) -> str:
    """Format a millisecond timestamp as a UTC ISO string."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


def utc_day(timestamp_ms: int) -> date:
    """Calendar day (UTC) of a millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date()


def age_ms(timestamp_ms: int, current_ms: int) -> int:
    """Age of a timestamp relative to current_ms (never negative)."""
    return max(0, current_ms - timestamp_ms)


def is_fresh(
    timestamp_ms: int,
    max_age_ms: int,
    current_ms: Optional[int] = None,
) -> bool:
    """
    Check if a timestamp is strictly younger than max_age_ms.

    Args:
        timestamp_ms: Unix timestamp (ms) to check
        max_age_ms: Age at which the timestamp stops being fresh
        current_ms: Current time (defaults to now)
    """
    current = now_ms() if current_ms is None else current_ms
    return age_ms(timestamp_ms, current) < max_age_ms
