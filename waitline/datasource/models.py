"""
Facility and wait time models.
"""

from datetime import datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field


class FacilityType(str, Enum):
    """Facility category."""

    EMERGENCY_DEPARTMENT = "ED"
    URGENT_CARE = "UC"

    @property
    def display_name(self) -> str:
        if self == FacilityType.EMERGENCY_DEPARTMENT:
            return "Emergency Department"
        return "Urgent Care"


class FacilityStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class ProviderKind(str, Enum):
    """Upstream family a facility resolves to."""

    STRUCTURED_QUEUE_API = "structured_queue_api"
    SLOT_AVAILABILITY_API = "slot_availability_api"
    HEALTH_RECORDS_API = "health_records_api"
    HTML_SCRAPE = "html_scrape"
    SYNTHETIC = "synthetic"


class Provenance(str, Enum):
    """Where a record's numbers came from."""

    OBSERVED = "observed"
    SYNTHETIC = "synthetic"
    STATIC_AVERAGE = "static_average"


class OperatingHours(BaseModel):
    """Daily opening window in the facility's local time."""

    model_config = ConfigDict(frozen=True)

    open_time: time = time(8, 0)
    close_time: time = time(20, 0)
    always_open: bool = False

    @classmethod
    def emergency_24x7(cls) -> "OperatingHours":
        return cls(always_open=True)

    @classmethod
    def standard_urgent_care(cls) -> "OperatingHours":
        return cls()

    def is_open_at(self, moment: datetime) -> bool:
        if self.always_open:
            return True
        now = moment.time()
        if self.open_time <= self.close_time:
            return self.open_time <= now < self.close_time
        # Window crosses midnight
        return now >= self.open_time or now < self.close_time


class Facility(BaseModel):
    """A facility as supplied by the external catalog. Read-only to the core."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    facility_type: FacilityType = FacilityType.URGENT_CARE
    api_endpoint: str | None = None
    website_url: str | None = None
    static_average_wait_minutes: int | None = Field(default=None, ge=0)
    operating_hours: OperatingHours | None = None

    @property
    def hours(self) -> OperatingHours:
        if self.operating_hours is not None:
            return self.operating_hours
        if self.facility_type == FacilityType.EMERGENCY_DEPARTMENT:
            return OperatingHours.emergency_24x7()
        return OperatingHours.standard_urgent_care()

    def is_currently_open(self, now: datetime | None = None, tz: str = "America/Chicago") -> bool:
        local_now = (now or datetime.now(ZoneInfo(tz))).astimezone(ZoneInfo(tz))
        return self.hours.is_open_at(local_now)

    @property
    def is_refreshable(self) -> bool:
        return bool(self.api_endpoint or self.website_url)

    @property
    def label(self) -> str:
        return f"{self.name} ({self.id})" if self.name else self.id


class WaitTimeRecord(BaseModel):
    """
    Normalised wait information for one facility.

    ``patients_in_line`` is current occupancy. ``queue_total`` carries the
    upstream capacity figure separately and is never used to derive it.
    """

    model_config = ConfigDict(frozen=True)

    facility_id: str
    wait_minutes: int = Field(default=0, ge=0)
    patients_in_line: int = Field(default=0, ge=0)
    status: FacilityStatus = FacilityStatus.UNKNOWN
    last_updated: datetime
    next_available_slot: int = Field(default=0, ge=0)
    wait_time_range: str | None = None

    # Internal bookkeeping
    source: ProviderKind
    provenance: Provenance = Provenance.OBSERVED
    has_queue_breakdown: bool = False
    queue_total: int | None = None

    def age(self, now: datetime) -> timedelta:
        return now - self.last_updated

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        return self.age(now) > threshold

    @property
    def display_text(self) -> str:
        if self.wait_minutes == 0:
            return "No wait"
        if self.wait_minutes < 60:
            return f"{self.wait_minutes} min"
        hours, minutes = divmod(self.wait_minutes, 60)
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"

    @property
    def patient_display_text(self) -> str:
        if self.status == FacilityStatus.CLOSED:
            return "Closed"
        if self.status in (FacilityStatus.UNAVAILABLE, FacilityStatus.UNKNOWN):
            return "N/A"
        if self.patients_in_line == 0:
            return "No patients"
        if self.patients_in_line == 1:
            return "1 patient"
        return f"{self.patients_in_line} patients"
