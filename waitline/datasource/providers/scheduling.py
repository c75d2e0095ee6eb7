"""
Slot availability API (St. Luke's scheduling).

Payload:
    {"slots": [{"start": "2026-10-17T14:30:00-05:00"}, ...]}

The body may instead be plain text containing "no slots expected", which
means the facility is not taking visits right now.
"""

import json
import math
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser
from pydantic import BaseModel, ValidationError

from waitline.datasource.base import BaseProvider
from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    ProviderKind,
    WaitTimeRecord,
)
from waitline.services.errors import DecodeError, InvalidURLError, NoDataError
from waitline.services.url_policy import TrustedURLPurpose

SLOT_ACCEPT = "application/json, text/plain;q=0.9, */*;q=0.8"
NO_SLOTS_SENTINEL = "no slots expected"


class Slot(BaseModel):
    start: str


class SlotResponse(BaseModel):
    slots: list[Slot]


def parse_slot_time(value: str, tz: str) -> datetime | None:
    """ISO-8601 timestamp; naive values are taken as facility-local time."""
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(tz))
    return parsed.astimezone(timezone.utc)


def minutes_until_next_slot(
    starts: list[datetime], now: datetime
) -> int | None:
    upcoming = sorted(start for start in starts if start >= now)
    if not upcoming:
        return None
    return max(0, math.ceil((upcoming[0] - now).total_seconds() / 60))


class SlotAvailabilityProvider(BaseProvider):
    """Derives a wait from the next bookable visit slot. No patient counts."""

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.SLOT_AVAILABILITY_API

    async def fetch(self, facility: Facility) -> WaitTimeRecord:
        if not facility.api_endpoint:
            raise InvalidURLError(None, f"{facility.label} has no API endpoint")

        result = await self.client.fetch(
            facility.api_endpoint,
            TrustedURLPurpose.API,
            headers={"Accept": SLOT_ACCEPT, "Referer": "https://www.stlukes-stl.com"},
            retries=self.settings.fallback_retries,
        )
        return self.parse(result.text, facility, self.now())

    def parse(self, body: str, facility: Facility, now: datetime) -> WaitTimeRecord:
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        if isinstance(payload, dict) and "slots" in payload:
            try:
                response = SlotResponse.model_validate(payload)
            except ValidationError as e:
                raise DecodeError(f"{facility.label}: malformed slot list") from e

            starts = [
                parsed
                for parsed in (
                    parse_slot_time(slot.start, self.settings.timezone)
                    for slot in response.slots
                )
                if parsed is not None
            ]
            wait = minutes_until_next_slot(starts, now)
            if wait is not None:
                return WaitTimeRecord(
                    facility_id=facility.id,
                    wait_minutes=wait,
                    patients_in_line=0,
                    status=FacilityStatus.OPEN,
                    last_updated=now,
                    next_available_slot=wait,
                    source=self.kind,
                )
            return self._no_upcoming_slots(facility, now)

        if NO_SLOTS_SENTINEL in body.lower():
            return self._no_upcoming_slots(facility, now)

        if payload is None:
            raise DecodeError(f"{facility.label}: response is neither JSON nor a known notice")
        raise NoDataError(f"{facility.label}: no slot data in response")

    def _no_upcoming_slots(self, facility: Facility, now: datetime) -> WaitTimeRecord:
        open_now = facility.is_currently_open(now, self.settings.timezone)
        return WaitTimeRecord(
            facility_id=facility.id,
            status=FacilityStatus.UNAVAILABLE if open_now else FacilityStatus.CLOSED,
            last_updated=now,
            source=self.kind,
        )
