"""
FetchOrchestrator - Batched refresh of every facility's wait time.

Per facility the primary provider chosen by the router runs first; any
failure falls back to the HTML scrape; if that fails too the facility has
no record this cycle. Batches of facilities run one after another with a
stagger between them, and a batch is merged into the store only after every
facility in it has resolved.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Iterable, Sequence

from loguru import logger

from waitline.datasource.base import utc_now
from waitline.datasource.models import (
    Facility,
    FacilityStatus,
    FacilityType,
    Provenance,
    ProviderKind,
    WaitTimeRecord,
)
from waitline.datasource.providers import BaseProvider, SyntheticEstimator, build_providers
from waitline.datasource.router import ProviderRouter
from waitline.services.client import ServiceClient
from waitline.services.errors import (
    EmptyFacilityListError,
    InvalidURLError,
    RateLimitedError,
    WaitTimeError,
)
from waitline.services.refresh_guard import RefreshGuard
from waitline.services.store import ResultStore
from waitline.services.url_policy import TrustedURLPurpose
from waitline.settings import Settings

LONG_WAIT_MINUTES = 30


@dataclass
class FetchSummary:
    """Outcome of one ``fetch_all`` cycle."""

    requested: int = 0
    batches: int = 0
    records: dict[str, WaitTimeRecord] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> int:
        return len(self.records)

    @property
    def duration(self) -> timedelta | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "requested": self.requested,
            "batches": self.batches,
            "succeeded": self.succeeded,
            "failed": len(self.failed),
            "duration": self.duration.total_seconds() if self.duration is not None else None,
        }


def chunked(items: Sequence[Facility], size: int) -> list[list[Facility]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class FetchOrchestrator:
    """
    Owns the resilience registry (via the client), the result store and the
    per-facility refresh guard. Construct once and share.

    Usage:
        async with FetchOrchestrator(settings) as orchestrator:
            summary = await orchestrator.fetch_all(facilities)
            for facility in facilities:
                record = orchestrator.best_record(facility)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: ServiceClient | None = None,
        store: ResultStore | None = None,
        router: ProviderRouter | None = None,
        providers: dict[ProviderKind, BaseProvider] | None = None,
        refresh_guard: RefreshGuard | None = None,
        estimator: SyntheticEstimator | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        log=None,
    ):
        self.settings = settings or Settings()
        self.client = client or ServiceClient(self.settings)
        self.store = store or ResultStore(
            stale_after=timedelta(seconds=self.settings.stale_after_seconds),
            clock=clock,
        )
        self.router = router or ProviderRouter.from_settings(self.settings)
        self.providers = providers or build_providers(
            self.client, self.settings, clock=clock, log=log
        )
        self.guard = refresh_guard or RefreshGuard()
        self.estimator = estimator or SyntheticEstimator(tz=self.settings.timezone)
        self._sleep = sleep
        self._clock = clock
        self.log = (log or logger).bind(component="orchestrator")

        self.last_error: WaitTimeError | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def registry(self):
        return self.client.registry

    @property
    def refreshing(self) -> frozenset[str]:
        """Facility ids with a manual refresh in flight."""
        return self.guard.in_flight()

    # ── Batch refresh ────────────────────────────────────────────────────────

    async def fetch_all(
        self,
        facilities: Iterable[Facility],
        on_complete: Callable[[FetchSummary], Any] | None = None,
    ) -> FetchSummary:
        """
        Refresh every facility that has something to fetch.

        Raises:
            EmptyFacilityListError: No facility has an API endpoint or website
        """
        refreshable = [f for f in facilities if f.is_refreshable]
        if not refreshable:
            raise EmptyFacilityListError()

        batches = chunked(refreshable, self.settings.batch_size)
        summary = FetchSummary(
            requested=len(refreshable), batches=len(batches), started_at=self._clock()
        )
        self.log.info(
            f"Refreshing {len(refreshable)} facilities in {len(batches)} batches"
        )

        for index, batch in enumerate(batches):
            if index:
                await self._sleep(self.settings.batch_stagger_seconds)

            results = await asyncio.gather(*(self._fetch_facility(f) for f in batch))

            records = [record for record in results if record is not None]
            self.store.merge(records)
            for facility, record in zip(batch, results):
                if record is None:
                    summary.failed.append(facility.id)
                    continue
                summary.records[facility.id] = record
                if self._needs_secondary_scrape(facility, record):
                    self._schedule_secondary_scrape(facility, record)

            self.log.info(
                f"Batch {index + 1}/{len(batches)}: "
                f"{len(records)}/{len(batch)} facilities updated"
            )
            self._log_cycle_stats(records)

        summary.finished_at = self._clock()
        self.log.info(f"Refresh complete: {summary.to_dict()}")
        if on_complete is not None:
            on_complete(summary)
        return summary

    async def _fetch_facility(self, facility: Facility) -> WaitTimeRecord | None:
        """Primary provider, then scrape. Never raises."""
        kind = self.router.route(facility)
        record = await self._try_provider(self.providers[kind], facility)
        if record is not None:
            return record

        if kind == ProviderKind.HTML_SCRAPE or not facility.website_url:
            return None
        return await self._try_provider(self.providers[ProviderKind.HTML_SCRAPE], facility)

    async def _try_provider(
        self, provider: BaseProvider, facility: Facility
    ) -> WaitTimeRecord | None:
        try:
            return await provider.fetch(facility)
        except WaitTimeError as e:
            self.last_error = e
            self.log.debug(f"{facility.label}: {provider.kind.value} failed: {e}")
        except Exception:
            self.log.exception(f"{facility.label}: unexpected {provider.kind.value} error")
        return None

    # ── Secondary scrape ─────────────────────────────────────────────────────

    def _needs_secondary_scrape(self, facility: Facility, record: WaitTimeRecord) -> bool:
        """Primary answered zero with no sub-queue telemetry, whatever its status."""
        return (
            record.source == ProviderKind.STRUCTURED_QUEUE_API
            and record.provenance == Provenance.OBSERVED
            and record.patients_in_line == 0
            and not record.has_queue_breakdown
            and bool(facility.website_url)
        )

    def _schedule_secondary_scrape(self, facility: Facility, primary: WaitTimeRecord) -> None:
        task = asyncio.create_task(self._secondary_scrape(facility, primary))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _secondary_scrape(self, facility: Facility, primary: WaitTimeRecord) -> None:
        scraped = await self._try_provider(self.providers[ProviderKind.HTML_SCRAPE], facility)
        if scraped is None:
            return
        if scraped.status != FacilityStatus.OPEN or scraped.patients_in_line == 0:
            self.log.debug(f"{facility.label}: secondary scrape found nothing to add")
            return

        def improve(current: WaitTimeRecord | None) -> WaitTimeRecord | None:
            base = current or primary
            if base.has_queue_breakdown and base.patients_in_line > 0:
                return None
            if base.last_updated > scraped.last_updated:
                return None
            return base.model_copy(
                update={
                    "patients_in_line": scraped.patients_in_line,
                    "status": scraped.status,
                    "last_updated": scraped.last_updated,
                }
            )

        updated = self.store.update(facility.id, improve)
        if updated is not None:
            self.log.info(
                f"{facility.label}: secondary scrape set {updated.patients_in_line} in line"
            )

    async def drain(self) -> None:
        """Wait for outstanding secondary scrapes."""
        while self._background:
            await asyncio.gather(*list(self._background))

    # ── Manual refresh ───────────────────────────────────────────────────────

    async def fetch_one(
        self,
        facility: Facility,
        on_complete: Callable[[WaitTimeRecord | None], Any] | None = None,
    ) -> bool:
        """
        Refresh a single facility.

        Returns False without any network call when the facility is already
        refreshing or its endpoint is currently refused by the registry.
        """
        if self.guard.is_in_flight(facility.id):
            self.log.debug(f"{facility.label}: refresh already in flight")
            return False

        if facility.api_endpoint:
            try:
                key = self.client.url_policy.validate(
                    facility.api_endpoint, TrustedURLPurpose.API
                )
            except InvalidURLError:
                key = None
            if key is not None and not self.registry.should_call(key):
                self.last_error = RateLimitedError(
                    key, self.registry.get_time_until_reset(key)
                )
                self.log.info(f"{facility.label}: refresh refused, {self.last_error}")
                return False

        if not self.guard.try_begin(facility.id):
            return False
        try:
            record = await self._fetch_facility(facility)
            if record is not None:
                self.store.put(record)
                if self._needs_secondary_scrape(facility, record):
                    self._schedule_secondary_scrape(facility, record)
        finally:
            self.guard.end(facility.id)

        if on_complete is not None:
            on_complete(record)
        return True

    # ── Reads ────────────────────────────────────────────────────────────────

    def best_record(self, facility: Facility) -> WaitTimeRecord | None:
        """
        Fresh cached record, else a synthetic estimate (synthetic-only
        facilities), else the static average (emergency departments), else None.
        """
        record = self.store.get_fresh(facility.id)
        if record is not None:
            return record

        now = self._clock()
        if self.router.is_synthetic_only(facility):
            return self.estimator.estimate(facility, now)

        if (
            facility.facility_type == FacilityType.EMERGENCY_DEPARTMENT
            and facility.static_average_wait_minutes is not None
        ):
            open_now = facility.is_currently_open(now, self.settings.timezone)
            return WaitTimeRecord(
                facility_id=facility.id,
                wait_minutes=facility.static_average_wait_minutes,
                patients_in_line=0,
                status=FacilityStatus.OPEN if open_now else FacilityStatus.CLOSED,
                last_updated=now,
                source=ProviderKind.SYNTHETIC,
                provenance=Provenance.STATIC_AVERAGE,
            )
        return None

    def _log_cycle_stats(self, records: list[WaitTimeRecord]) -> None:
        waits = [r.wait_minutes for r in records if r.status == FacilityStatus.OPEN]
        if not waits:
            return
        no_wait = sum(1 for w in waits if w == 0)
        long_wait = sum(1 for w in waits if w > LONG_WAIT_MINUTES)
        self.log.info(
            f"Wait stats: min={min(waits)} max={max(waits)} "
            f"avg={sum(waits) / len(waits):.1f} no_wait={no_wait} long_wait={long_wait}"
        )

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self.drain()
        await self.client.close()

    async def __aenter__(self) -> "FetchOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_health_status(self) -> dict[str, Any]:
        return {
            **self.client.get_health_status(),
            "store": self.store.get_stats().to_dict(),
            "refreshing": sorted(self.refreshing),
        }
