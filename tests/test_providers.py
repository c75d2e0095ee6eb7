from datetime import datetime, timezone

import httpx
import pytest

from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    FacilityType,
    Provenance,
    ProviderKind,
)
from waitline.datasource.providers import (
    HealthRecordsProvider,
    HtmlScrapeProvider,
    SyntheticProvider,
    build_providers,
)
from waitline.datasource.providers.health_records import Bundle, find_wait_minutes
from waitline.services.errors import NoDataError
from waitline.settings import Settings

from tests.conftest import clockwise_facility, make_client

NOW = datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)
FHIR_HOST = "fhir.ssmhealth.com"
SSM = Facility(
    id="ssm-health-slu",
    facility_type=FacilityType.EMERGENCY_DEPARTMENT,
    api_endpoint=f"https://{FHIR_HOST}/R4/Observation?location=slu",
)


def fhir_bundle(*observations) -> dict:
    return {"resourceType": "Bundle", "entry": [{"resource": o} for o in observations]}


def test_build_providers_covers_every_kind(settings) -> None:
    providers = build_providers(None, settings)
    assert set(providers) == set(ProviderKind)


@pytest.mark.asyncio
async def test_scrape_provider_extracts_count(settings) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="<script>var currentPatientsInLine = 6;</script>")

    provider = HtmlScrapeProvider(make_client(handler, settings), settings, clock=lambda: NOW)
    record = await provider.fetch(clockwise_facility(1))

    assert record.patients_in_line == 6
    assert record.source == ProviderKind.HTML_SCRAPE
    assert record.last_updated == NOW
    assert "Mozilla" in seen[0].headers["user-agent"]


@pytest.mark.asyncio
async def test_scrape_provider_raises_no_data(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<h1>Book a visit</h1>")

    provider = HtmlScrapeProvider(make_client(handler, settings), settings)
    with pytest.raises(NoDataError):
        await provider.fetch(clockwise_facility(1))


@pytest.mark.asyncio
async def test_health_records_without_token_is_synthetic(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = HealthRecordsProvider(make_client(handler, settings), settings, clock=lambda: NOW)
    record = await provider.fetch(SSM)

    assert record.provenance == Provenance.SYNTHETIC
    assert record.source == ProviderKind.HEALTH_RECORDS_API


@pytest.mark.asyncio
async def test_health_records_reads_wait_observation() -> None:
    settings = Settings(
        retry_base_delay=0.0,
        min_call_interval=0.0,
        fhir_access_token="secret",
        trusted_api_hosts=[FHIR_HOST],
    )
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=fhir_bundle(
                {"resourceType": "Observation", "code": {"coding": [{"code": "heart-rate"}]},
                 "valueQuantity": {"value": 80}},
                {"resourceType": "Observation", "code": {"coding": [{"code": "wait-time"}]},
                 "valueQuantity": {"value": 34.4, "unit": "min"}},
            ),
        )

    provider = HealthRecordsProvider(make_client(handler, settings), settings, clock=lambda: NOW)
    record = await provider.fetch(SSM)

    assert record.wait_minutes == 34
    assert record.provenance == Provenance.OBSERVED
    assert record.status == FacilityStatus.OPEN
    assert seen[0].headers["authorization"] == "Bearer secret"


def test_find_wait_minutes_from_value_string() -> None:
    bundle = Bundle.model_validate(
        fhir_bundle(
            {"code": {"coding": [{"display": "ED Wait Time"}]}, "valueString": "1 hour 30 min"}
        )
    )
    assert find_wait_minutes(bundle) == 90


def test_find_wait_minutes_without_match() -> None:
    assert find_wait_minutes(Bundle.model_validate({"resourceType": "Bundle"})) is None
    bundle = Bundle.model_validate(
        fhir_bundle({"code": {"coding": [{"code": "bp"}]}, "valueQuantity": {"value": 120}})
    )
    assert find_wait_minutes(bundle) is None


@pytest.mark.asyncio
async def test_synthetic_provider_needs_no_network(settings) -> None:
    provider = SyntheticProvider(None, settings, clock=lambda: NOW)
    record = await provider.fetch(SSM)

    assert provider.is_configured(SSM) is True
    assert record.provenance == Provenance.SYNTHETIC
    assert record.source == ProviderKind.SYNTHETIC
