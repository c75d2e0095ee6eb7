"""
RefreshGuard - Refuses a second concurrent refresh of the same facility.

Unlike request deduplication, a duplicate caller does not join the running
refresh; it is simply turned away. The in-flight set doubles as the
per-row loading indicator for the presentation layer.
"""

import threading
from typing import Any

from loguru import logger


class RefreshGuard:
    """
    Usage:
        guard = RefreshGuard()

        if not guard.try_begin(facility.id):
            return False  # already refreshing
        try:
            await refresh(facility)
        finally:
            guard.end(facility.id)
    """

    def __init__(self, debug: bool = False):
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()
        self._debug = debug
        self._stats = RefreshGuardStats()

    def try_begin(self, key: str) -> bool:
        """Mark ``key`` in flight. False if it already was."""
        with self._lock:
            if key in self._in_flight:
                self._stats.refused += 1
                self._log(f"REFUSED: {key}")
                return False
            self._in_flight.add(key)
            self._stats.started += 1
            self._log(f"BEGIN: {key}")
            return True

    def end(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)
            self._log(f"END: {key}")

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def in_flight(self) -> frozenset[str]:
        """Snapshot of keys currently refreshing."""
        with self._lock:
            return frozenset(self._in_flight)

    def get_stats(self) -> "RefreshGuardStats":
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[RefreshGuard] {message}")


class RefreshGuardStats:
    """Statistics for manual refreshes."""

    def __init__(self):
        self.started: int = 0
        self.refused: int = 0  # Re-entrant attempts turned away
        self.in_flight: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "refused": self.refused,
            "in_flight": self.in_flight,
        }
