"""
Periodic wait time refresh, driven by APScheduler.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from waitline.datasource.catalog import FacilityCatalog
from waitline.services.errors import EmptyFacilityListError
from waitline.services.orchestrator import FetchOrchestrator, FetchSummary
from waitline.utils import logged_job


class WaitTimeScheduler:
    """Runs ``fetch_all`` over the catalog on a fixed interval."""

    JOB_ID = "wait_time_refresh"

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        catalog: FacilityCatalog,
        interval_minutes: int | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.orchestrator = orchestrator
        self.catalog = catalog
        self.interval_minutes = interval_minutes or orchestrator.settings.refresh_interval_minutes
        self.scheduler = scheduler or AsyncIOScheduler()
        self._is_running = False
        self.last_summary: FetchSummary | None = None

    @logged_job
    async def refresh_job(self) -> FetchSummary | None:
        try:
            summary = await self.orchestrator.fetch_all(self.catalog.facilities)
        except EmptyFacilityListError:
            logger.warning(
                f"None of the {len(self.catalog)} catalog facilities has an endpoint "
                "or website, skipping refresh"
            )
            return None
        self.last_summary = summary
        return summary

    def start(self) -> None:
        if self._is_running:
            logger.warning("Wait time scheduler is already running")
            return

        self.scheduler.add_job(
            self.refresh_job,
            trigger="interval",
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            name="Wait Time Refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Wait time scheduler started: refreshing every {self.interval_minutes} minutes")

    def stop(self) -> None:
        if not self._is_running:
            logger.warning("Wait time scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Wait time scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running

    async def refresh_now(self) -> FetchSummary | None:
        """Immediate refresh outside the schedule."""
        logger.info("Manual wait time refresh triggered")
        return await self.refresh_job()
