"""Main entry point for the deal storefront."""

import argparse
import asyncio
import sys
from typing import Optional

from loguru import logger

from .orchestrator.coordinator import StorefrontCoordinator
from .orchestrator.scheduler import JobScheduler
from .utils.config import get_config, get_config_manager
from .utils.logger import setup_logging


async def run_scheduler():
    """Run the job scheduler."""
    setup_logging("scheduler")

    logger.info("=" * 80)
    logger.info("Deal Storefront Scheduler - Starting")
    logger.info("=" * 80)

    coordinator = StorefrontCoordinator.from_config()
    scheduler = JobScheduler(coordinator, get_config_manager())

    scheduler.configure_jobs()
    scheduler.start()

    logger.info("Scheduler started. Press Ctrl+C to stop.")

    try:
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutting down...")
        scheduler.stop()
        coordinator.close()


async def run_sheet_import(sheet_url: Optional[str] = None):
    """Import offer links from the spreadsheet once.

    Args:
        sheet_url: Sheet link; the configured sheet when omitted
    """
    setup_logging("import-sheet")

    coordinator = StorefrontCoordinator.from_config()
    created = await coordinator.run_sheet_import(sheet_url)
    coordinator.close()

    logger.info(f"Sheet import completed: {created} new offers")


async def run_enrichment(limit: int):
    """Enrich pending offers once."""
    setup_logging("enrich")

    coordinator = StorefrontCoordinator.from_config()
    ready = await coordinator.run_enrichment(limit=limit)
    coordinator.close()

    logger.info(f"Enrichment completed: {ready} offers ready")


def run_api():
    """Run the FastAPI server."""
    import uvicorn

    from .api.main import create_app

    config = get_config()
    setup_logging("api", config)

    logger.info("=" * 80)
    logger.info("Deal Storefront API - Starting")
    logger.info("=" * 80)

    app = create_app(StorefrontCoordinator.from_config(config))

    uvicorn.run(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Deal Storefront")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("api", help="Run the API server")

    subparsers.add_parser("scheduler", help="Run the job scheduler")

    import_parser = subparsers.add_parser("import-sheet", help="Import offers from a sheet")
    import_parser.add_argument(
        "url", nargs="?", default=None, help="Sheet link (defaults to the configured sheet)"
    )

    enrich_parser = subparsers.add_parser("enrich", help="Enrich pending offers")
    enrich_parser.add_argument(
        "--limit", type=int, default=20, help="Maximum offers to process"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "api":
            run_api()
        elif args.command == "scheduler":
            asyncio.run(run_scheduler())
        elif args.command == "import-sheet":
            asyncio.run(run_sheet_import(args.url))
        elif args.command == "enrich":
            asyncio.run(run_enrichment(args.limit))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.exception(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
