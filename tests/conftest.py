from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from waitline.datasource.models import Facility, FacilityType
from waitline.services.client import ServiceClient
from waitline.settings import Settings


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    # 10:00 in St. Louis (CDT)
    return FakeClock(datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        retry_base_delay=0.0,
        min_call_interval=0.0,
        fhir_access_token="",
    )


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    settings: Settings,
) -> ServiceClient:
    return ServiceClient(settings, transport=httpx.MockTransport(handler))


def clockwise_facility(hospital_id: int, website: bool = True) -> Facility:
    return Facility(
        id=f"total-access-{hospital_id}",
        name=f"Total Access {hospital_id}",
        facility_type=FacilityType.URGENT_CARE,
        api_endpoint=f"https://api.clockwisemd.com/v1/hospitals/{hospital_id}/waits",
        website_url=(
            f"https://www.clockwisemd.com/hospitals/{hospital_id}/visits/new" if website else None
        ),
    )
