"""
Provider routing: facility -> ProviderKind.

Resolution order (first match wins):
1. Synthetic-only identifier prefixes (configured)
2. Identifier prefix table
3. Endpoint URL substring table
4. StructuredQueueAPI
"""

from typing import Iterable

from waitline.datasource.models import Facility, ProviderKind

PREFIX_TABLE: tuple[tuple[str, ProviderKind], ...] = (
    ("total-access", ProviderKind.STRUCTURED_QUEUE_API),
    ("mercy-gohealth", ProviderKind.STRUCTURED_QUEUE_API),
    ("st-lukes", ProviderKind.SLOT_AVAILABILITY_API),
    ("ssm-health", ProviderKind.HEALTH_RECORDS_API),
)

ENDPOINT_FRAGMENT_TABLE: tuple[tuple[str, ProviderKind], ...] = (
    ("schedule.stlukes-stl.com", ProviderKind.SLOT_AVAILABILITY_API),
    ("clockwisemd.com", ProviderKind.STRUCTURED_QUEUE_API),
    ("mercy.net", ProviderKind.STRUCTURED_QUEUE_API),
    ("epic", ProviderKind.HEALTH_RECORDS_API),
    ("mychart", ProviderKind.HEALTH_RECORDS_API),
    ("1up.health", ProviderKind.HEALTH_RECORDS_API),
    ("fhir", ProviderKind.HEALTH_RECORDS_API),
)


class ProviderRouter:
    """Pure mapping from facility data to a provider family."""

    def __init__(
        self,
        synthetic_only_prefixes: Iterable[str] = (),
        prefix_table: tuple[tuple[str, ProviderKind], ...] = PREFIX_TABLE,
        fragment_table: tuple[tuple[str, ProviderKind], ...] = ENDPOINT_FRAGMENT_TABLE,
    ):
        self.synthetic_only_prefixes = tuple(synthetic_only_prefixes)
        self.prefix_table = prefix_table
        self.fragment_table = fragment_table

    @classmethod
    def from_settings(cls, settings) -> "ProviderRouter":
        return cls(synthetic_only_prefixes=settings.synthetic_only_prefixes)

    def is_synthetic_only(self, facility: Facility) -> bool:
        return facility.id.startswith(self.synthetic_only_prefixes) if self.synthetic_only_prefixes else False

    def route(self, facility: Facility) -> ProviderKind:
        if self.is_synthetic_only(facility):
            return ProviderKind.SYNTHETIC

        for prefix, kind in self.prefix_table:
            if facility.id.startswith(prefix):
                return kind

        endpoint = (facility.api_endpoint or "").lower()
        if endpoint:
            for fragment, kind in self.fragment_table:
                if fragment in endpoint:
                    return kind

        # Default kept for facilities configured before routing existed
        return ProviderKind.STRUCTURED_QUEUE_API


def route(facility: Facility) -> ProviderKind:
    """Route with the built-in tables and no synthetic-only prefixes."""
    return ProviderRouter().route(facility)
