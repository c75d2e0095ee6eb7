"""
WaitLine main entry point.
Refreshes facility wait times on a schedule, or once with --once.
"""

import argparse
import asyncio
import sys

from loguru import logger

from waitline.datasource.catalog import FacilityCatalog
from waitline.datasource.scheduler import WaitTimeScheduler
from waitline.services.errors import EmptyFacilityListError
from waitline.services.orchestrator import FetchOrchestrator
from waitline.settings import Settings, global_settings


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "{extra[component]} | {message}",
    )
    logger.configure(extra={"component": "main"})


def print_report(orchestrator: FetchOrchestrator, catalog: FacilityCatalog) -> None:
    for facility in catalog:
        record = orchestrator.best_record(facility)
        if record is None:
            stale = orchestrator.store.get(facility.id)
            if stale is not None:
                print(f"{facility.label:60} {stale.display_text:>10}  (stale)")
            else:
                print(f"{facility.label:60} {'no data':>10}")
            continue
        tag = "" if record.provenance.value == "observed" else f"  ({record.provenance.value})"
        print(
            f"{facility.label:60} {record.display_text:>10}  "
            f"{record.patient_display_text}{tag}"
        )


async def run_once(settings: Settings, catalog: FacilityCatalog) -> None:
    async with FetchOrchestrator(settings) as orchestrator:
        try:
            await orchestrator.fetch_all(catalog.facilities)
        except EmptyFacilityListError:
            logger.warning("No facility in the catalog can be refreshed")
        await orchestrator.drain()
        print_report(orchestrator, catalog)


async def run_forever(settings: Settings, catalog: FacilityCatalog) -> None:
    orchestrator = FetchOrchestrator(settings)
    scheduler = WaitTimeScheduler(orchestrator, catalog)

    try:
        scheduler.start()
        logger.info("Performing initial refresh...")
        await scheduler.refresh_now()

        logger.info("WaitLine is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)
    finally:
        if scheduler.is_running():
            scheduler.stop()
        await orchestrator.close()
        logger.info("WaitLine stopped")


def main() -> None:
    parser = argparse.ArgumentParser(description="Current wait times for St. Louis facilities")
    parser.add_argument("--once", action="store_true", help="run a single refresh and print results")
    parser.add_argument("--facilities", default=None, help="path to the facility catalog YAML")
    args = parser.parse_args()

    settings = global_settings
    configure_logging(settings.log_level)

    catalog = FacilityCatalog.from_yaml(args.facilities or settings.facilities_path)
    try:
        asyncio.run(run_once(settings, catalog) if args.once else run_forever(settings, catalog))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")


if __name__ == "__main__":
    main()
