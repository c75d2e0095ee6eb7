"""
EndpointResilienceRegistry - per-endpoint circuit breaker and rate limiter.

Breaker states:
- CLOSED: Normal operation, calls pass through
- OPEN: Endpoint is failing, calls are refused
- HALF_OPEN: Cool-down elapsed, a single probe call is allowed

Transitions:
- CLOSED → OPEN: After failure_threshold consecutive failures
- OPEN → HALF_OPEN: reset_timeout after the last recorded failure
- HALF_OPEN → CLOSED: On a successful probe
- HALF_OPEN → OPEN: On a failed probe (failure clock restarts)

The rate limiter is independent of the breaker: a call is refused when less
than min_interval has elapsed since the last attempt on the same key.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable

from loguru import logger


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreakerConfig:
    """Configuration shared by every endpoint in a registry."""

    failure_threshold: int = 3  # Consecutive failures before opening
    reset_timeout: timedelta = timedelta(seconds=300)  # Since last failure
    min_interval: timedelta = timedelta(seconds=2)  # Between attempts per key

    @classmethod
    def from_settings(cls, settings) -> "CircuitBreakerConfig":
        return cls(
            failure_threshold=settings.failure_threshold,
            reset_timeout=timedelta(seconds=settings.breaker_reset_seconds),
            min_interval=timedelta(seconds=settings.min_call_interval),
        )


@dataclass
class EndpointBreaker:
    """Mutable state for one endpoint key. Only touched under the registry lock."""

    endpoint: str
    consecutive_failures: int = 0
    last_failure_time: datetime | None = None
    is_open: bool = False
    last_attempt_time: datetime | None = None
    probe_in_flight: bool = False
    opened_count: int = field(default=0)

    def state(self, now: datetime, config: CircuitBreakerConfig) -> CircuitState:
        if not self.is_open:
            return CircuitState.CLOSED
        if (
            self.last_failure_time is None
            or now - self.last_failure_time >= config.reset_timeout
        ):
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN


class EndpointResilienceRegistry:
    """
    Circuit breaker + rate limiter keyed by endpoint URL.

    Usage:
        registry = EndpointResilienceRegistry()

        if not registry.should_call(url):
            raise RateLimitedError(url)

        registry.record_attempt(url)
        try:
            result = await make_request()
            registry.record_success(url)
        except Exception:
            registry.record_failure(url)
            raise

    State is created lazily on first reference and every mutation happens
    under a single lock.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: dict[str, EndpointBreaker] = {}
        self._lock = threading.Lock()

    def _get(self, endpoint: str) -> EndpointBreaker:
        breaker = self._breakers.get(endpoint)
        if breaker is None:
            breaker = EndpointBreaker(endpoint=endpoint)
            self._breakers[endpoint] = breaker
        return breaker

    def should_call(self, endpoint: str) -> bool:
        """Check the breaker, then the rate limiter, for this endpoint."""
        with self._lock:
            now = self._clock()
            breaker = self._get(endpoint)

            state = breaker.state(now, self.config)
            if state == CircuitState.OPEN:
                logger.debug(f"Circuit open for {endpoint}")
                return False
            if state == CircuitState.HALF_OPEN and breaker.probe_in_flight:
                logger.debug(f"Probe already in flight for {endpoint}")
                return False

            if breaker.last_attempt_time is not None:
                elapsed = now - breaker.last_attempt_time
                if elapsed < self.config.min_interval:
                    logger.debug(
                        f"Rate limited for {endpoint} - "
                        f"{elapsed.total_seconds():.2f}s since last call"
                    )
                    return False

            return True

    def record_attempt(self, endpoint: str) -> None:
        """Stamp the attempt time; a half-open breaker now has its probe out."""
        with self._lock:
            now = self._clock()
            breaker = self._get(endpoint)
            breaker.last_attempt_time = now
            if breaker.state(now, self.config) == CircuitState.HALF_OPEN:
                breaker.probe_in_flight = True

    def release_probe(self, endpoint: str) -> None:
        """Abandon a half-open probe that ended with neither success nor failure."""
        with self._lock:
            breaker = self._breakers.get(endpoint)
            if breaker is not None and breaker.probe_in_flight:
                breaker.probe_in_flight = False
                logger.debug(f"Probe released for {endpoint}")

    def record_success(self, endpoint: str) -> None:
        with self._lock:
            breaker = self._get(endpoint)
            was_open = breaker.is_open
            breaker.consecutive_failures = 0
            breaker.last_failure_time = None
            breaker.is_open = False
            breaker.probe_in_flight = False
            if was_open:
                logger.info(f"Circuit breaker '{endpoint}' CLOSED (recovered)")

    def record_failure(self, endpoint: str) -> None:
        with self._lock:
            now = self._clock()
            breaker = self._get(endpoint)
            breaker.consecutive_failures += 1
            breaker.last_failure_time = now
            breaker.probe_in_flight = False

            if breaker.is_open:
                # Failed probe: stay open, cool-down restarts from now
                logger.warning(f"Circuit breaker '{endpoint}' probe failed, re-opened")
            elif breaker.consecutive_failures >= self.config.failure_threshold:
                breaker.is_open = True
                breaker.opened_count += 1
                logger.warning(
                    f"Circuit breaker '{endpoint}' OPENED after "
                    f"{breaker.consecutive_failures} failures"
                )

    def get_state(self, endpoint: str) -> CircuitState:
        with self._lock:
            return self._get(endpoint).state(self._clock(), self.config)

    def get_time_until_reset(self, endpoint: str) -> float | None:
        """Seconds until an open breaker allows a probe."""
        with self._lock:
            breaker = self._breakers.get(endpoint)
            if breaker is None or not breaker.is_open or not breaker.last_failure_time:
                return None
            reset_at = breaker.last_failure_time + self.config.reset_timeout
            return max(0.0, (reset_at - self._clock()).total_seconds())

    def get_status(self, endpoint: str) -> dict[str, Any] | None:
        with self._lock:
            breaker = self._breakers.get(endpoint)
            if breaker is None:
                return None
            return self._status(breaker)

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {key: self._status(b) for key, b in self._breakers.items()}

    def get_open_circuits(self) -> list[str]:
        with self._lock:
            now = self._clock()
            return [
                key
                for key, breaker in self._breakers.items()
                if breaker.state(now, self.config) == CircuitState.OPEN
            ]

    def reset(self, endpoint: str) -> bool:
        """Manually reset one endpoint."""
        with self._lock:
            if endpoint not in self._breakers:
                return False
            self._breakers[endpoint] = EndpointBreaker(endpoint=endpoint)
            logger.info(f"Circuit breaker '{endpoint}' manually reset")
            return True

    def reset_all(self) -> None:
        with self._lock:
            count = len(self._breakers)
            self._breakers.clear()
        logger.info(f"Reset {count} circuit breakers")

    def _status(self, breaker: EndpointBreaker) -> dict[str, Any]:
        return {
            "endpoint": breaker.endpoint,
            "state": breaker.state(self._clock(), self.config).value,
            "consecutive_failures": breaker.consecutive_failures,
            "last_failure": (
                breaker.last_failure_time.isoformat()
                if breaker.last_failure_time
                else None
            ),
            "last_attempt": (
                breaker.last_attempt_time.isoformat()
                if breaker.last_attempt_time
                else None
            ),
            "times_opened": breaker.opened_count,
        }
