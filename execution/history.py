"""
execution/history.py - Bounded ledger of execution attempts.
"""

from collections import deque
from typing import Iterator

from core.constants import HISTORY_CAPACITY
from core.models import ExecutionRecord


class ExecutionHistory:
    """Insertion-ordered records; the oldest is dropped past capacity."""

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._records: deque[ExecutionRecord] = deque(maxlen=capacity)

    def append(self, record: ExecutionRecord) -> None:
        self._records.append(record)

    def recent(self, limit: int = 10) -> list[ExecutionRecord]:
        """Newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._records))[:limit]

    def since(self, cutoff_ms: int) -> list[ExecutionRecord]:
        """Records started after cutoff_ms, oldest first."""
        return [r for r in self._records if r.started_at_ms > cutoff_ms]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ExecutionRecord]:
        return iter(list(self._records))
