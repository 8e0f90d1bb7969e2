"""
Process Adapter - Output Aggregator

Every chunk read from a process is appended to two places: the pending buffer
handed out by drain(), and the running total kept for the completion record.
"""

import threading
from typing import List


class OutputAggregator:
    """Per-session output buffer with at-most-once draining."""

    def __init__(self):
        self._pending: List[str] = []
        self._full: List[str] = []
        self._lock = threading.Lock()

    def append(self, chunk: str) -> None:
        """Append a chunk in arrival order."""
        if not chunk:
            return
        with self._lock:
            self._pending.append(chunk)
            self._full.append(chunk)

    def drain(self) -> str:
        """Swap the pending buffer for an empty one and return its contents.

        An empty string means nothing arrived since the last drain.
        """
        with self._lock:
            pending, self._pending = self._pending, []
        return "".join(pending)

    @property
    def full_output(self) -> str:
        with self._lock:
            return "".join(self._full)

    @property
    def pending_size(self) -> int:
        with self._lock:
            return sum(len(chunk) for chunk in self._pending)
