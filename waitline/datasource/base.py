"""
Base provider interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from waitline.datasource.models import Facility, ProviderKind, WaitTimeRecord
from waitline.services.client import ServiceClient
from waitline.settings import Settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseProvider(ABC):
    """
    Abstract base class for all wait time providers.

    All providers should:
    - Use ServiceClient for HTTP requests (URL policy, circuit breaker, retries)
    - Return a fresh WaitTimeRecord per successful response
    - Raise a WaitTimeError subclass on failure, never return partial data
    """

    def __init__(
        self,
        client: ServiceClient,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
        log=None,
    ):
        self.client = client
        self.settings = settings or Settings()
        self._clock = clock
        self.log = (log or logger).bind(component=self.kind.value)

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Provider family served by this client."""
        ...

    @abstractmethod
    async def fetch(self, facility: Facility) -> WaitTimeRecord:
        """Fetch and normalise wait data for one facility."""
        ...

    def is_configured(self, facility: Facility) -> bool:
        """Whether the facility carries what this provider needs."""
        return bool(facility.api_endpoint)

    def now(self) -> datetime:
        return self._clock()
