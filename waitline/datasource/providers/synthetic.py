"""
Synthetic estimates for facilities with no usable public feed.

Values follow a time-of-day profile with random jitter. Every record is
tagged ``Provenance.SYNTHETIC`` so it is never mistaken for observed data.
"""

import random
from datetime import datetime
from zoneinfo import ZoneInfo

from waitline.datasource.base import BaseProvider
from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    FacilityType,
    Provenance,
    ProviderKind,
    WaitTimeRecord,
)

JITTER_MINUTES = 15
NEXT_SLOT_OFFSET = 10
MINUTES_PER_PATIENT = 8

# (first hour, last hour, ED base, UC base)
HOURLY_PROFILE = (
    (6, 10, 45, 25),
    (11, 14, 35, 20),
    (15, 18, 60, 35),
    (19, 22, 75, 40),
)
OVERNIGHT_BASE = (20, 15)


def base_wait_minutes(facility_type: FacilityType, hour: int) -> int:
    ed_base, uc_base = OVERNIGHT_BASE
    for first, last, ed, uc in HOURLY_PROFILE:
        if first <= hour <= last:
            ed_base, uc_base = ed, uc
            break
    return ed_base if facility_type == FacilityType.EMERGENCY_DEPARTMENT else uc_base


class SyntheticEstimator:
    """Deterministic given the injected ``rng``."""

    def __init__(self, rng: random.Random | None = None, tz: str = "America/Chicago"):
        self.rng = rng or random.Random()
        self.tz = tz

    def estimate(
        self, facility: Facility, now: datetime, source: ProviderKind = ProviderKind.SYNTHETIC
    ) -> WaitTimeRecord:
        hour = now.astimezone(ZoneInfo(self.tz)).hour
        base = base_wait_minutes(facility.facility_type, hour)
        wait = max(0, base + self.rng.randint(-JITTER_MINUTES, JITTER_MINUTES))
        patients = max(1, wait // MINUTES_PER_PATIENT) if wait > 0 else 0

        return WaitTimeRecord(
            facility_id=facility.id,
            wait_minutes=wait,
            patients_in_line=patients,
            status=FacilityStatus.OPEN,
            last_updated=now,
            next_available_slot=wait + NEXT_SLOT_OFFSET,
            source=source,
            provenance=Provenance.SYNTHETIC,
        )


class SyntheticProvider(BaseProvider):
    def __init__(self, *args, estimator: SyntheticEstimator | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.estimator = estimator or SyntheticEstimator(tz=self.settings.timezone)

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.SYNTHETIC

    def is_configured(self, facility: Facility) -> bool:
        return True

    async def fetch(self, facility: Facility) -> WaitTimeRecord:
        return self.estimator.estimate(facility, self.now())
