"""Job scheduling for the deal storefront."""

from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

if TYPE_CHECKING:
    from .coordinator import StorefrontCoordinator


class JobScheduler:
    """Manages the background offer jobs.

    Default schedule:
    - Enrichment of pending offers: Every 15 minutes
    - Spreadsheet import: Every 6 hours (only when a sheet is configured)
    """

    def __init__(self, coordinator: "StorefrontCoordinator", config: Any):
        """Initialize job scheduler.

        Args:
            coordinator: Storefront coordinator instance
            config: Configuration dictionary, or any object with a dotted ``get``
        """
        self.coordinator = coordinator
        self.config = config
        self.job_defaults = {
            "coalesce": True,
            "max_instances": self._get("schedule.max_instances_per_job", 1),
            "misfire_grace_time": self._get("schedule.misfire_grace_time_seconds", 60),
        }
        self.scheduler = AsyncIOScheduler(job_defaults=self.job_defaults)

    def _get(self, key: str, default: Any = None) -> Any:
        if isinstance(self.config, dict):
            section, _, name = key.partition(".")
            return self.config.get(section, {}).get(name, default)
        return self.config.get(key, default)

    def configure_jobs(self):
        """Set up all scheduled jobs based on configuration."""
        enrichment_minutes = self._get("schedule.enrichment_minutes", 15)
        self.scheduler.add_job(
            self.coordinator.run_enrichment,
            IntervalTrigger(minutes=enrichment_minutes),
            id="enrichment",
            name="Pending Offer Enrichment",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled offer enrichment every {enrichment_minutes} minutes")

        sheet_url = self._get("sheets.url", "")
        if not sheet_url:
            logger.info("No offers sheet configured; sheet import not scheduled")
            return

        sheet_hours = self._get("schedule.sheet_import_hours", 6)
        self.scheduler.add_job(
            self.coordinator.run_sheet_import,
            IntervalTrigger(hours=sheet_hours),
            args=[sheet_url],
            id="sheet_import",
            name="Spreadsheet Offer Import",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled sheet import every {sheet_hours} hours")

    def start(self):
        """Start the scheduler."""
        logger.info("Starting job scheduler")
        self.scheduler.start()

    def stop(self):
        """Stop the scheduler."""
        logger.info("Stopping job scheduler")
        self.scheduler.shutdown()

    def get_jobs(self):
        """Get list of scheduled jobs."""
        return self.scheduler.get_jobs()
