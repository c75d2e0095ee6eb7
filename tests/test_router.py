import pytest

from waitline.datasource.models import Facility
from waitline.datasource.router import ProviderRouter, route
from waitline.datasource.models import ProviderKind
from waitline.settings import Settings


@pytest.mark.parametrize(
    "facility_id, expected",
    [
        ("total-access-13598", ProviderKind.STRUCTURED_QUEUE_API),
        ("mercy-gohealth-clayton", ProviderKind.STRUCTURED_QUEUE_API),
        ("st-lukes-chesterfield", ProviderKind.SLOT_AVAILABILITY_API),
        ("ssm-health-slu", ProviderKind.HEALTH_RECORDS_API),
    ],
)
def test_routes_by_identifier_prefix(facility_id, expected) -> None:
    assert route(Facility(id=facility_id)) == expected


@pytest.mark.parametrize(
    "endpoint, expected",
    [
        ("https://schedule.stlukes-stl.com/api/slots", ProviderKind.SLOT_AVAILABILITY_API),
        ("https://api.clockwisemd.com/v1/hospitals/1/waits", ProviderKind.STRUCTURED_QUEUE_API),
        ("https://www.mercy.net/content/mercy/us/en.waitTime", ProviderKind.STRUCTURED_QUEUE_API),
        ("https://fhir.epic.com/api/FHIR/R4/Observation", ProviderKind.HEALTH_RECORDS_API),
        ("https://mychart.example.org/wait", ProviderKind.HEALTH_RECORDS_API),
    ],
)
def test_routes_by_endpoint_fragment(endpoint, expected) -> None:
    assert route(Facility(id="clinic-1", api_endpoint=endpoint)) == expected


def test_prefix_wins_over_endpoint() -> None:
    facility = Facility(
        id="st-lukes-west",
        api_endpoint="https://api.clockwisemd.com/v1/hospitals/1/waits",
    )
    assert route(facility) == ProviderKind.SLOT_AVAILABILITY_API


def test_defaults_to_structured_queue_api() -> None:
    assert route(Facility(id="unknown-clinic")) == ProviderKind.STRUCTURED_QUEUE_API
    assert (
        route(Facility(id="unknown", api_endpoint="https://example.org/waits"))
        == ProviderKind.STRUCTURED_QUEUE_API
    )


def test_synthetic_only_prefixes_take_precedence() -> None:
    router = ProviderRouter.from_settings(Settings())
    facility = Facility(id="ssm-health-slu")

    assert router.is_synthetic_only(facility) is True
    assert router.route(facility) == ProviderKind.SYNTHETIC
    assert router.route(Facility(id="total-access-1")) == ProviderKind.STRUCTURED_QUEUE_API


def test_routing_is_pure() -> None:
    facility = Facility(id="mercy-gohealth-fenton")
    assert route(facility) == route(facility)
