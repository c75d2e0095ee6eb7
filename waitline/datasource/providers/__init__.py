"""
Provider clients, one per upstream family.
"""

from waitline.datasource.base import BaseProvider
from waitline.datasource.models import ProviderKind
from waitline.datasource.providers.clockwise import StructuredQueueProvider
from waitline.datasource.providers.health_records import HealthRecordsProvider
from waitline.datasource.providers.scheduling import SlotAvailabilityProvider
from waitline.datasource.providers.scrape import HtmlScrapeProvider
from waitline.datasource.providers.synthetic import SyntheticEstimator, SyntheticProvider


def build_providers(client, settings=None, **kwargs) -> dict[ProviderKind, BaseProvider]:
    """One instance of every provider sharing the same client and clock."""
    providers: list[BaseProvider] = [
        StructuredQueueProvider(client, settings, **kwargs),
        SlotAvailabilityProvider(client, settings, **kwargs),
        HealthRecordsProvider(client, settings, **kwargs),
        HtmlScrapeProvider(client, settings, **kwargs),
        SyntheticProvider(client, settings, **kwargs),
    ]
    return {provider.kind: provider for provider in providers}


__all__ = [
    "BaseProvider",
    "build_providers",
    "StructuredQueueProvider",
    "SlotAvailabilityProvider",
    "HealthRecordsProvider",
    "HtmlScrapeProvider",
    "SyntheticProvider",
    "SyntheticEstimator",
]
