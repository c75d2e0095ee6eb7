"""
Service layer infrastructure - resilience patterns for upstream wait-time calls.

Provides:
- EndpointResilienceRegistry: Per-endpoint circuit breaker and rate limiter
- URLPolicy: https + trusted-host enforcement
- ServiceClient: HTTP client combining the above with retries and timeouts
- ResultStore: Latest record per facility
- RefreshGuard: Refuses re-entrant manual refreshes

The orchestrator lives in ``waitline.services.orchestrator``.
"""

from waitline.services.errors import (
    WaitTimeError,
    InvalidURLError,
    RateLimitedError,
    NoDataError,
    APIError,
    NetworkError,
    NetworkErrorKind,
    DecodeError,
    EmptyFacilityListError,
)
from waitline.services.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    EndpointResilienceRegistry,
)
from waitline.services.url_policy import TrustedURLPurpose, URLPolicy, validate_trusted_url
from waitline.services.client import FetchResult, ServiceClient
from waitline.services.store import ResultStore, StoreStats
from waitline.services.refresh_guard import RefreshGuard

__all__ = [
    # Errors
    "WaitTimeError",
    "InvalidURLError",
    "RateLimitedError",
    "NoDataError",
    "APIError",
    "NetworkError",
    "NetworkErrorKind",
    "DecodeError",
    "EmptyFacilityListError",
    # Circuit Breaker
    "CircuitBreakerConfig",
    "CircuitState",
    "EndpointResilienceRegistry",
    # URL policy
    "TrustedURLPurpose",
    "URLPolicy",
    "validate_trusted_url",
    # Client
    "FetchResult",
    "ServiceClient",
    # Store
    "ResultStore",
    "StoreStats",
    "RefreshGuard",
]
