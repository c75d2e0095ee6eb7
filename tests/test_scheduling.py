import json
from datetime import datetime, timezone

import pytest

from waitline.datasource.models import Facility, FacilityStatus, FacilityType
from waitline.datasource.providers.scheduling import (
    SlotAvailabilityProvider,
    minutes_until_next_slot,
    parse_slot_time,
)
from waitline.services.errors import DecodeError, NoDataError
from waitline.settings import Settings

# 10:00 in St. Louis
DAYTIME = datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)
# 22:00 in St. Louis
NIGHT = datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)

FACILITY = Facility(
    id="st-lukes-chesterfield",
    facility_type=FacilityType.URGENT_CARE,
    api_endpoint="https://schedule.stlukes-stl.com/api/v1/locations/chesterfield/slots",
)


@pytest.fixture
def provider() -> SlotAvailabilityProvider:
    return SlotAvailabilityProvider(None, Settings())


def test_wait_is_minutes_until_next_future_slot(provider) -> None:
    body = json.dumps(
        {
            "slots": [
                {"start": "2026-10-17T14:00:00Z"},
                {"start": "2026-10-17T15:30:00.123Z"},
                {"start": "2026-10-17T15:10:30Z"},
            ]
        }
    )
    record = provider.parse(body, FACILITY, DAYTIME)

    assert record.wait_minutes == 11
    assert record.next_available_slot == 11
    assert record.status == FacilityStatus.OPEN
    assert record.patients_in_line == 0


def test_slot_at_now_counts_as_upcoming(provider) -> None:
    body = json.dumps({"slots": [{"start": "2026-10-17T10:00:00-05:00"}]})
    record = provider.parse(body, FACILITY, DAYTIME)
    assert record.wait_minutes == 0
    assert record.status == FacilityStatus.OPEN


def test_no_future_slot_while_open_is_unavailable(provider) -> None:
    body = json.dumps({"slots": [{"start": "2026-10-17T09:00:00Z"}]})
    record = provider.parse(body, FACILITY, DAYTIME)
    assert record.status == FacilityStatus.UNAVAILABLE


def test_no_future_slot_after_hours_is_closed(provider) -> None:
    record = provider.parse(json.dumps({"slots": []}), FACILITY, NIGHT)
    assert record.status == FacilityStatus.CLOSED


def test_sentinel_text_is_treated_as_no_future_slot(provider) -> None:
    assert (
        provider.parse("No slots expected today", FACILITY, DAYTIME).status
        == FacilityStatus.UNAVAILABLE
    )
    assert (
        provider.parse("no slots expected", FACILITY, NIGHT).status == FacilityStatus.CLOSED
    )


def test_unrecognised_bodies(provider) -> None:
    with pytest.raises(DecodeError):
        provider.parse("<html>error</html>", FACILITY, DAYTIME)
    with pytest.raises(NoDataError):
        provider.parse(json.dumps({"locations": []}), FACILITY, DAYTIME)
    with pytest.raises(DecodeError):
        provider.parse(json.dumps({"slots": "none"}), FACILITY, DAYTIME)


def test_parse_slot_time() -> None:
    assert parse_slot_time("2026-10-17T15:00:00Z", "America/Chicago") == DAYTIME
    assert parse_slot_time("2026-10-17T15:00:00.250Z", "America/Chicago").microsecond == 250000
    # Naive timestamps are facility-local
    assert parse_slot_time("2026-10-17T10:00:00", "America/Chicago") == DAYTIME
    assert parse_slot_time("tomorrow", "America/Chicago") is None


def test_minutes_until_next_slot_rounds_up() -> None:
    starts = [datetime(2026, 10, 17, 15, 0, 1, tzinfo=timezone.utc)]
    assert minutes_until_next_slot(starts, DAYTIME) == 1
    assert minutes_until_next_slot([], DAYTIME) is None
