"""
Structured queue API (ClockwiseMD) and the generic minutes API.

Queue payload:
    {
      "hospital_id": 13598,
      "hospital_waits": {"current_wait": "4 - 19", "queue_length": 3,
                         "queue_total": 12, "next_available_visit": 15},
      "appointment_queues": [
        {"queue_id": 1, "queue_waits": {"current_patients_in_line": 2,
                                        "current_wait": 10,
                                        "current_wait_range": "4 - 19"}}
      ]
    }

Minutes payload (Mercy wait endpoint):
    {"time": 17}

``queue_total`` is the queue's capacity. It is carried on the record for
validation only and never used as the patient count.
"""

import re
from datetime import datetime
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ValidationError

from waitline.datasource.base import BaseProvider
from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    ProviderKind,
    WaitTimeRecord,
)
from waitline.services.client import JSON_ACCEPT
from waitline.services.errors import DecodeError, InvalidURLError
from waitline.services.url_policy import TrustedURLPurpose

WAIT_RANGE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")
SINGLE_WAIT = re.compile(r"^\s*(\d+)\s*$")
EMPTY_RANGES = {"", "n/a"}


class QueueWaits(BaseModel):
    current_patients_in_line: int | None = None
    current_wait: int | str | None = None
    current_wait_range: str | None = None


class AppointmentQueue(BaseModel):
    queue_id: int | str | None = None
    queue_waits: QueueWaits | None = None


class HospitalWaits(BaseModel):
    current_wait: str | int | None = None
    queue_length: int | None = None
    queue_total: int | None = None
    next_available_visit: int | None = None


class QueueResponse(BaseModel):
    hospital_id: int | str | None = None
    hospital_waits: HospitalWaits
    appointment_queues: list[AppointmentQueue] | None = None


class MinutesResponse(BaseModel):
    time: int


def parse_wait_field(
    current_wait: str | int | None, has_queue_data: bool
) -> tuple[FacilityStatus, int]:
    """
    Interpret the free-text ``current_wait`` field.

    Returns (status, wait_minutes).
    """
    if current_wait is None:
        return (FacilityStatus.OPEN if has_queue_data else FacilityStatus.UNKNOWN), 0

    text = str(current_wait).strip().lower()
    if "closed" in text:
        return FacilityStatus.CLOSED, 0
    if "n/a" in text or "unavailable" in text:
        return (FacilityStatus.OPEN if has_queue_data else FacilityStatus.UNAVAILABLE), 0

    match = WAIT_RANGE.match(text)
    if match:
        low, high = int(match.group(1)), int(match.group(2))
        return FacilityStatus.OPEN, (low + high) // 2

    match = SINGLE_WAIT.match(text)
    if match:
        return FacilityStatus.OPEN, int(match.group(1))

    return FacilityStatus.OPEN, 0


def sum_patients_in_line(queues: list[AppointmentQueue]) -> int:
    """Current occupancy across sub-queues."""
    return sum(
        (queue.queue_waits.current_patients_in_line or 0)
        for queue in queues
        if queue.queue_waits is not None
    )


def first_wait_range(queues: list[AppointmentQueue]) -> str | None:
    for queue in queues:
        if queue.queue_waits is None:
            continue
        value = (queue.queue_waits.current_wait_range or "").strip()
        if value.lower() not in EMPTY_RANGES:
            return value
    return None


def capacity_conflated(patients_in_line: int, queue_total: int | None) -> bool:
    """A non-zero count equal to capacity is suspicious, not something to correct."""
    return bool(queue_total) and patients_in_line != 0 and patients_in_line == queue_total


def parse_queue_response(
    response: QueueResponse, facility: Facility, now: datetime, log=None
) -> WaitTimeRecord:
    waits = response.hospital_waits
    queues = response.appointment_queues or []
    has_breakdown = bool(queues)

    if has_breakdown:
        patients_in_line = sum_patients_in_line(queues)
        wait_range = first_wait_range(queues)
    else:
        # Top-level length only; queue_total is capacity and never substitutes
        patients_in_line = waits.queue_length or 0
        wait_range = None

    has_queue_data = has_breakdown or waits.queue_length is not None
    status, wait_minutes = parse_wait_field(waits.current_wait, has_queue_data)

    if wait_range is None and waits.current_wait is not None:
        text = str(waits.current_wait).strip()
        if WAIT_RANGE.match(text):
            wait_range = text

    if log is not None and capacity_conflated(patients_in_line, waits.queue_total):
        log.warning(
            f"{facility.label}: patients_in_line={patients_in_line} equals "
            f"queue_total={waits.queue_total}; possible capacity/count conflation"
        )

    return WaitTimeRecord(
        facility_id=facility.id,
        wait_minutes=max(0, wait_minutes),
        patients_in_line=max(0, patients_in_line),
        status=status,
        last_updated=now,
        next_available_slot=max(0, waits.next_available_visit or 0),
        wait_time_range=wait_range,
        source=ProviderKind.STRUCTURED_QUEUE_API,
        has_queue_breakdown=has_breakdown,
        queue_total=waits.queue_total,
    )


def parse_minutes_response(
    response: MinutesResponse, facility: Facility, now: datetime
) -> WaitTimeRecord:
    return WaitTimeRecord(
        facility_id=facility.id,
        wait_minutes=max(0, response.time),
        patients_in_line=0,
        status=FacilityStatus.OPEN,
        last_updated=now,
        source=ProviderKind.STRUCTURED_QUEUE_API,
    )


def decode_payload(
    payload: Any, facility: Facility, now: datetime, log=None
) -> WaitTimeRecord:
    """Pick the schema by shape and decode it."""
    if not isinstance(payload, dict):
        raise DecodeError(f"{facility.label}: expected a JSON object")
    try:
        if "hospital_waits" in payload:
            return parse_queue_response(
                QueueResponse.model_validate(payload), facility, now, log
            )
        if "time" in payload:
            return parse_minutes_response(
                MinutesResponse.model_validate(payload), facility, now
            )
    except ValidationError as e:
        raise DecodeError(f"{facility.label}: {e.error_count()} schema errors") from e
    raise DecodeError(f"{facility.label}: unrecognised payload keys {sorted(payload)[:5]}")


class StructuredQueueProvider(BaseProvider):
    """
    Primary patient-count source.

    Decodes ClockwiseMD hospital wait payloads and the plain ``{"time": N}``
    minutes payload served by the Mercy endpoint.
    """

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.STRUCTURED_QUEUE_API

    async def fetch(self, facility: Facility) -> WaitTimeRecord:
        if not facility.api_endpoint:
            raise InvalidURLError(None, f"{facility.label} has no API endpoint")

        headers = {"Accept": JSON_ACCEPT}
        host = urlsplit(facility.api_endpoint).hostname or ""
        if host.endswith("mercy.net"):
            headers["Referer"] = "https://www.mercy.net"

        result = await self.client.fetch(
            facility.api_endpoint,
            TrustedURLPurpose.API,
            headers=headers,
            retries=self.settings.primary_retries,
        )
        record = decode_payload(result.json(), facility, self.now(), self.log)
        self.log.debug(
            f"{facility.label}: {record.patients_in_line} in line, "
            f"{record.wait_minutes} min, status={record.status.value}"
        )
        return record
