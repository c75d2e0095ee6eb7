"""
Service layer exceptions.

Every provider failure is expressed as a ``WaitTimeError`` subclass so the
orchestrator can degrade a single facility to "no record" without touching
its siblings.
"""

from enum import Enum


class WaitTimeError(Exception):
    """Base exception for wait time fetch errors."""

    def __init__(self, message: str, endpoint: str | None = None):
        self.endpoint = endpoint
        super().__init__(message)


class InvalidURLError(WaitTimeError):
    """URL failed scheme/host validation; no request was made."""

    def __init__(self, url: str | None, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}", endpoint=url)


class RateLimitedError(WaitTimeError):
    """The resilience registry refused the call."""

    def __init__(self, endpoint: str, retry_after: float | None = None):
        self.retry_after = retry_after
        msg = f"Call to '{endpoint}' refused by circuit breaker or rate limiter"
        if retry_after:
            msg += f", retry after {retry_after:.1f}s"
        super().__init__(msg, endpoint=endpoint)


class NoDataError(WaitTimeError):
    """Provider was reached but produced nothing usable."""

    pass


class APIError(WaitTimeError):
    """Upstream answered with a non-2xx status or an unusable payload."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, endpoint=endpoint)

    @property
    def is_transient(self) -> bool:
        return self.status_code is not None and (
            self.status_code == 429 or self.status_code >= 500
        )


class NetworkErrorKind(str, Enum):
    """Transport failure classes."""

    TIMEOUT = "timeout"
    OFFLINE = "offline"
    HOST_UNREACHABLE = "host_unreachable"
    TLS = "tls"
    OTHER = "other"


class NetworkError(WaitTimeError):
    """Transport-level failure."""

    def __init__(
        self,
        kind: NetworkErrorKind,
        message: str = "",
        endpoint: str | None = None,
    ):
        self.kind = kind
        super().__init__(
            f"Network error ({kind.value}): {message}" if message else
            f"Network error ({kind.value})",
            endpoint=endpoint,
        )


class DecodeError(WaitTimeError):
    """Payload could not be decoded into the provider schema."""

    pass


class EmptyFacilityListError(WaitTimeError):
    """fetch_all was given nothing it could refresh."""

    def __init__(self, message: str = "No refreshable facilities"):
        super().__init__(message)
