"""
ResultStore - Latest WaitTimeRecord per facility.

Features:
- Records are replaced whole, never mutated (they are frozen models)
- Writes serialised by a lock; reads work on snapshots
- Staleness judged against an injected clock
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from loguru import logger

from waitline.datasource.models import WaitTimeRecord


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResultStore:
    """
    Per-facility record map.

    Usage:
        store = ResultStore(stale_after=timedelta(minutes=5))
        store.merge(batch_records)

        record = store.get_fresh("total-access-13598")
        if record is None:
            ...  # missing or stale
    """

    def __init__(
        self,
        stale_after: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._records: dict[str, WaitTimeRecord] = {}
        self._stale_after = stale_after
        self._clock = clock
        self._lock = threading.Lock()
        self._last_update: datetime | None = None
        self._stats = StoreStats()

    @property
    def stale_after(self) -> timedelta:
        return self._stale_after

    def put(self, record: WaitTimeRecord) -> None:
        self.merge([record])

    def merge(self, records: Iterable[WaitTimeRecord]) -> int:
        """Replace the stored record of every facility in ``records``."""
        records = list(records)
        if not records:
            return 0
        with self._lock:
            for record in records:
                self._records[record.facility_id] = record
            self._last_update = self._clock()
            self._stats.writes += len(records)
        logger.debug(f"[ResultStore] merged {len(records)} records")
        return len(records)

    def update(
        self,
        facility_id: str,
        updater: Callable[[WaitTimeRecord | None], WaitTimeRecord | None],
    ) -> WaitTimeRecord | None:
        """
        Atomically derive a replacement from the current record.

        ``updater`` receives the stored record (or None) and returns the new
        record, or None to leave the store untouched.
        """
        with self._lock:
            replacement = updater(self._records.get(facility_id))
            if replacement is None:
                self._stats.rejected += 1
                return None
            self._records[facility_id] = replacement
            self._last_update = self._clock()
            self._stats.writes += 1
            return replacement

    def get(self, facility_id: str) -> WaitTimeRecord | None:
        """Latest record regardless of age."""
        record = self._records.get(facility_id)
        if record is None:
            self._stats.misses += 1
        else:
            self._stats.hits += 1
        return record

    def get_fresh(self, facility_id: str) -> WaitTimeRecord | None:
        """Latest record if it is not stale."""
        record = self.get(facility_id)
        if record is None or self.is_stale(record):
            return None
        return record

    def is_stale(self, record: WaitTimeRecord) -> bool:
        return record.is_stale(self._clock(), self._stale_after)

    def snapshot(self) -> dict[str, WaitTimeRecord]:
        """Point-in-time copy of every record."""
        with self._lock:
            return dict(self._records)

    def remove(self, facility_id: str) -> bool:
        with self._lock:
            return self._records.pop(facility_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._last_update = None

    @property
    def last_update_time(self) -> datetime | None:
        return self._last_update

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, facility_id: object) -> bool:
        return facility_id in self._records

    def get_stats(self) -> "StoreStats":
        now = self._clock()
        records = self.snapshot()
        self._stats.size = len(records)
        self._stats.stale = sum(
            1 for record in records.values() if record.is_stale(now, self._stale_after)
        )
        self._stats.last_update = self._last_update
        return self._stats


@dataclass
class StoreStats:
    """Counters for the result store."""

    size: int = 0
    stale: int = 0
    hits: int = 0
    misses: int = 0
    writes: int = 0
    rejected: int = 0
    last_update: datetime | None = None

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "stale": self.stale,
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "rejected": self.rejected,
            "hit_rate": f"{self.hit_rate:.2%}",
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }
