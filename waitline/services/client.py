"""
ServiceClient - Async HTTP client with the resilience rules every provider shares.

Combines:
- URLPolicy for https + trusted-host enforcement (every redirect hop included)
- EndpointResilienceRegistry for circuit breaking and per-endpoint rate limiting
- Bounded retries with exponential backoff for transient failures
- Per-request and per-resource timeouts
"""

import asyncio
import json
import ssl
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from waitline.services.circuit_breaker import (
    CircuitBreakerConfig,
    EndpointResilienceRegistry,
)
from waitline.services.errors import (
    APIError,
    DecodeError,
    NetworkError,
    NetworkErrorKind,
    RateLimitedError,
    WaitTimeError,
)
from waitline.services.retry import with_exponential_backoff
from waitline.services.url_policy import TrustedURLPurpose, URLPolicy
from waitline.settings import Settings

MAX_REDIRECTS = 5

JSON_ACCEPT = "application/json"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


@dataclass
class FetchResult:
    """Body and metadata of a successful response."""

    url: str
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)
    attempts: int = 1

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {self.url}: {e}", endpoint=self.url) from e


def classify_network_error(exc: BaseException) -> NetworkErrorKind:
    """Map an httpx transport exception onto a NetworkErrorKind."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkErrorKind.TIMEOUT

    cause: BaseException | None = exc
    while cause is not None:
        if isinstance(cause, ssl.SSLError):
            return NetworkErrorKind.TLS
        cause = cause.__cause__ or cause.__context__

    message = str(exc).lower()
    if "ssl" in message or "certificate" in message or "tls" in message:
        return NetworkErrorKind.TLS
    if "network is unreachable" in message or "network is down" in message:
        return NetworkErrorKind.OFFLINE
    if isinstance(exc, httpx.ConnectError):
        return NetworkErrorKind.HOST_UNREACHABLE
    return NetworkErrorKind.OTHER


class ServiceClient:
    """
    HTTP client that every provider goes through.

    Usage:
        async with ServiceClient(settings) as client:
            result = await client.fetch(
                facility.api_endpoint,
                TrustedURLPurpose.API,
                retries=settings.primary_retries,
            )
            payload = result.json()

    ``fetch`` raises a WaitTimeError subclass on any failure. The endpoint
    key used for circuit breaking is the validated URL.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: EndpointResilienceRegistry | None = None,
        url_policy: URLPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings or Settings()
        self.registry = registry or EndpointResilienceRegistry(
            CircuitBreakerConfig.from_settings(self._settings)
        )
        self.url_policy = url_policy or URLPolicy.from_settings(self._settings)
        self._transport = transport

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.request_timeout),
                follow_redirects=False,
                transport=self._transport,
                headers={
                    "User-Agent": self._settings.user_agent,
                    "Accept-Language": "en-US,en;q=0.9",
                    "Cache-Control": "no-cache",
                },
            )
        return self._http_client

    async def fetch(
        self,
        url: str | None,
        purpose: TrustedURLPurpose,
        headers: dict[str, str] | None = None,
        retries: int = 0,
        gate: bool = True,
    ) -> FetchResult:
        """
        GET a trusted URL.

        Args:
            url: Raw URL from facility configuration
            purpose: Which host allow-list applies
            headers: Extra request headers
            retries: Additional attempts for transient failures
            gate: Consult and update the resilience registry

        Raises:
            InvalidURLError: Scheme/host validation failed (no request made)
            RateLimitedError: Registry refused the call
            APIError, NetworkError: Request failed after retries
        """
        safe_url = self.url_policy.validate(url, purpose)
        endpoint_key = safe_url

        if gate:
            if not self.registry.should_call(endpoint_key):
                raise RateLimitedError(
                    endpoint_key, self.registry.get_time_until_reset(endpoint_key)
                )
            self.registry.record_attempt(endpoint_key)

        attempts = 0

        async def do_request() -> FetchResult:
            nonlocal attempts
            attempts += 1
            return await self._execute_request(safe_url, purpose, headers or {})

        def on_retry(attempt: int, delay: float, exc: Exception) -> None:
            logger.debug(f"Retry {attempt} for {endpoint_key} in {delay:.2f}s: {exc}")

        try:
            result = await asyncio.wait_for(
                with_exponential_backoff(
                    do_request,
                    retries=retries,
                    base_delay_seconds=self._settings.retry_base_delay,
                    on_retry=on_retry,
                ),
                timeout=self._settings.resource_timeout,
            )
        except asyncio.TimeoutError as e:
            if gate:
                self.registry.record_failure(endpoint_key)
            raise NetworkError(
                NetworkErrorKind.TIMEOUT,
                f"resource fetch exceeded {self._settings.resource_timeout}s",
                endpoint=endpoint_key,
            ) from e
        except WaitTimeError:
            if gate:
                self.registry.record_failure(endpoint_key)
            raise
        except BaseException:
            # Cancelled mid-request
            if gate:
                self.registry.release_probe(endpoint_key)
            raise

        if gate:
            self.registry.record_success(endpoint_key)
        result.attempts = attempts
        return result

    async def _execute_request(
        self,
        url: str,
        purpose: TrustedURLPurpose,
        headers: dict[str, str],
    ) -> FetchResult:
        """Execute the request, following redirects only to trusted hosts."""
        client = await self._get_http_client()
        current = url

        for _ in range(MAX_REDIRECTS + 1):
            try:
                response = await client.get(current, headers=headers)
            except httpx.TimeoutException as e:
                raise NetworkError(
                    NetworkErrorKind.TIMEOUT, str(e) or "request timed out", endpoint=url
                ) from e
            except httpx.RequestError as e:
                raise NetworkError(classify_network_error(e), str(e), endpoint=url) from e

            if response.is_redirect:
                location = response.headers.get("location")
                if not location:
                    raise APIError(
                        f"HTTP {response.status_code} without Location",
                        status_code=response.status_code,
                        endpoint=url,
                    )
                current = self.url_policy.validate(
                    str(response.url.join(location)), purpose
                )
                logger.debug(f"Following redirect {url} -> {current}")
                continue

            if not response.is_success:
                raise APIError(
                    f"HTTP {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                    endpoint=url,
                )

            return FetchResult(
                url=current,
                status_code=response.status_code,
                text=response.text,
                headers=dict(response.headers),
            )

        raise APIError(f"Too many redirects from {url}", endpoint=url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ServiceClient closed")

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_health_status(self) -> dict[str, Any]:
        """Breaker state of every endpoint seen so far."""
        return {
            "circuit_breakers": self.registry.get_all_status(),
            "open_circuits": self.registry.get_open_circuits(),
        }
