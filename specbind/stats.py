"""Per-source generation counters."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Mapping, Optional

from .errors import SyncCancelledError


class StatsCounter:
    """Named integer counts accumulated by plugins while generating one source.

    One instance lives for exactly one pipeline run of one source. Plugins call
    :meth:`increment`; the orchestrator reads :meth:`snapshot` once every
    plugin for the source has finished.
    """

    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._closed_reason: Optional[str] = None

    def close(self, reason: str) -> None:
        """Refuse further increments; used when the run is cancelled mid-generation."""
        with self._lock:
            self._closed_reason = reason

    def increment(self, category: str, by: int = 1) -> None:
        if not category:
            raise ValueError("Stats category must be a non-empty string")
        if by < 0:
            raise ValueError("Stats counters only move forward")
        with self._lock:
            if self._closed_reason is not None:
                raise SyncCancelledError(self._closed_reason, source_id=self.source_id)
            self._counts[category] = self._counts.get(category, 0) + by

    def get(self, category: str) -> int:
        with self._lock:
            return self._counts.get(category, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"StatsCounter(source_id={self.source_id!r}, counts={self.snapshot()!r})"


def total(snapshots: Iterable[Mapping[str, int]]) -> Dict[str, int]:
    """Sum category counts across several snapshots."""
    result: Dict[str, int] = {}
    for snapshot in snapshots:
        for category, count in snapshot.items():
            result[category] = result.get(category, 0) + count
    return result


__all__ = ["StatsCounter", "total"]
