"""
Facility data sources - models, routing, provider clients and the catalog.
"""

from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    FacilityType,
    OperatingHours,
    Provenance,
    ProviderKind,
    WaitTimeRecord,
)
from waitline.datasource.router import ProviderRouter, route

__all__ = [
    # Models
    "Facility",
    "FacilityStatus",
    "FacilityType",
    "OperatingHours",
    "Provenance",
    "ProviderKind",
    "WaitTimeRecord",
    # Routing
    "ProviderRouter",
    "route",
]
