"""
Facility catalog - loads the facility list from YAML.

Format:
    version: "1.0"
    facilities:
      - id: total-access-13598
        name: Total Access Urgent Care - University City
        facility_type: UC
        api_endpoint: https://api.clockwisemd.com/v1/hospitals/13598/waits
        website_url: https://www.clockwisemd.com/hospitals/13598/visits/new
"""

from pathlib import Path

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from waitline.datasource.models import Facility, FacilityType


class CatalogConfig(BaseModel):
    """Whole catalog file."""

    version: str = "1.0"
    facilities: list[Facility] = Field(default_factory=list)


class CatalogError(Exception):
    """The catalog file exists but cannot be used."""


class FacilityCatalog:
    """Read-only facility list keyed by id."""

    def __init__(self, facilities: list[Facility] | None = None):
        self._facilities: dict[str, Facility] = {}
        for facility in facilities or []:
            if facility.id in self._facilities:
                logger.warning(f"Duplicate facility id {facility.id}, keeping the first")
                continue
            self._facilities[facility.id] = facility

    @classmethod
    def from_yaml(cls, path: str | Path) -> "FacilityCatalog":
        path = Path(path)
        if not path.exists():
            raise CatalogError(f"Facility catalog not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise CatalogError(f"Invalid YAML in {path}: {e}") from e

        try:
            config = CatalogConfig.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Invalid facility catalog {path}: {e}") from e

        logger.info(f"Loaded {len(config.facilities)} facilities from {path}")
        return cls(config.facilities)

    @property
    def facilities(self) -> list[Facility]:
        return list(self._facilities.values())

    def get(self, facility_id: str) -> Facility | None:
        return self._facilities.get(facility_id)

    def by_type(self, facility_type: FacilityType) -> list[Facility]:
        return [f for f in self._facilities.values() if f.facility_type == facility_type]

    def with_api(self) -> list[Facility]:
        return [f for f in self._facilities.values() if f.api_endpoint]

    def __len__(self) -> int:
        return len(self._facilities)

    def __iter__(self):
        return iter(self._facilities.values())
