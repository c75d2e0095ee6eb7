"""
Health-records (FHIR) provider.

With an access token, reads a FHIR ``Bundle`` of ``Observation`` resources
and takes the first observation coded as a wait time. Without a token the
provider cannot authenticate, so it answers with a synthetic estimate.
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from waitline.datasource.base import BaseProvider
from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    ProviderKind,
    WaitTimeRecord,
)
from waitline.datasource.providers.synthetic import SyntheticEstimator
from waitline.extraction import extract_minutes
from waitline.services.errors import DecodeError, InvalidURLError, NoDataError
from waitline.services.url_policy import TrustedURLPurpose

FHIR_ACCEPT = "application/fhir+json"
WAIT_TIME_CODE = "wait-time"


class Coding(BaseModel):
    code: str | None = None
    display: str | None = None


class CodeableConcept(BaseModel):
    coding: list[Coding] = Field(default_factory=list)
    text: str | None = None


class Quantity(BaseModel):
    value: float | None = None
    unit: str | None = None


class Observation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_type: str = Field(default="Observation", alias="resourceType")
    code: CodeableConcept | None = None
    value_quantity: Quantity | None = Field(default=None, alias="valueQuantity")
    value_string: str | None = Field(default=None, alias="valueString")

    @property
    def is_wait_time(self) -> bool:
        if self.code is None:
            return False
        for coding in self.code.coding:
            if coding.code == WAIT_TIME_CODE:
                return True
            if coding.display and "wait" in coding.display.lower():
                return True
        return bool(self.code.text and "wait" in self.code.text.lower())

    def wait_minutes(self) -> int | None:
        if self.value_quantity is not None and self.value_quantity.value is not None:
            return max(0, round(self.value_quantity.value))
        return extract_minutes(self.value_string)


class BundleEntry(BaseModel):
    resource: Observation | None = None


class Bundle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_type: str = Field(default="Bundle", alias="resourceType")
    entry: list[BundleEntry] | None = None


def find_wait_minutes(bundle: Bundle) -> int | None:
    for entry in bundle.entry or []:
        observation = entry.resource
        if observation is None or not observation.is_wait_time:
            continue
        minutes = observation.wait_minutes()
        if minutes is not None:
            return minutes
    return None


class HealthRecordsProvider(BaseProvider):
    def __init__(self, *args, estimator: SyntheticEstimator | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.estimator = estimator or SyntheticEstimator(tz=self.settings.timezone)

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.HEALTH_RECORDS_API

    def is_configured(self, facility: Facility) -> bool:
        return bool(facility.api_endpoint and self.settings.fhir_access_token)

    async def fetch(self, facility: Facility) -> WaitTimeRecord:
        now = self.now()
        if not self.settings.fhir_access_token:
            self.log.debug(f"{facility.label}: no FHIR token, using synthetic estimate")
            return self.estimator.estimate(facility, now, source=self.kind)

        if not facility.api_endpoint:
            raise InvalidURLError(None, f"{facility.label} has no API endpoint")

        result = await self.client.fetch(
            facility.api_endpoint,
            TrustedURLPurpose.API,
            headers={
                "Accept": FHIR_ACCEPT,
                "Authorization": f"Bearer {self.settings.fhir_access_token}",
            },
            retries=self.settings.fallback_retries,
        )

        try:
            bundle = Bundle.model_validate(result.json())
        except ValidationError as e:
            raise DecodeError(f"{facility.label}: malformed FHIR bundle") from e

        minutes = find_wait_minutes(bundle)
        if minutes is None:
            raise NoDataError(f"{facility.label}: no wait-time observation", endpoint=result.url)

        return WaitTimeRecord(
            facility_id=facility.id,
            wait_minutes=minutes,
            patients_in_line=0,
            status=FacilityStatus.OPEN,
            last_updated=now,
            source=self.kind,
        )
