"""APScheduler-based daily price refresh.

Runs the batch price refresh over all featured listings once a day. The
scheduler only triggers the refresh; selection, per-item isolation and
counting live in ``PriceRefreshService``.
"""

from typing import Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from krolist.config import settings
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.refresh_service import PriceRefreshService, RefreshJobResult
from krolist.services.listing_service import ListingService

logger = structlog.get_logger(__name__)

REFRESH_JOB_ID = "refresh_featured_prices"


class PriceRefreshScheduler:
    """Manages the daily price refresh job."""

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        hour: Optional[int] = None,
        tz: Optional[str] = None,
    ):
        """Initialize price refresh scheduler.

        Args:
            db_session_factory: Async session factory for database access
            hour: Local hour at which the refresh runs (defaults to REFRESH_CRON_HOUR)
            tz: Timezone for the cron trigger (defaults to QUOTA_TIMEZONE)
        """
        self.db_session_factory = db_session_factory
        self.hour = hour if hour is not None else settings.REFRESH_CRON_HOUR
        self.tz = tz or settings.QUOTA_TIMEZONE
        self.scheduler = AsyncIOScheduler(timezone=self.tz)
        self.logger = logger.bind(service="price_refresh_scheduler")

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        """Stop the scheduler, waiting for a running refresh to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def add_refresh_job(self) -> Job:
        """Register the daily refresh job, replacing any existing one."""
        trigger = CronTrigger(hour=self.hour, minute=0, timezone=self.tz)

        job = self.scheduler.add_job(
            func=self._run_refresh_wrapper,
            trigger=trigger,
            id=REFRESH_JOB_ID,
            name="Refresh featured listing prices",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.logger.info(
            "refresh_job_added",
            hour=self.hour,
            timezone=self.tz,
            next_run=job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
        )
        return job

    async def _run_refresh_wrapper(self) -> None:
        """Entry point called by APScheduler; errors are logged so the job keeps its schedule."""
        try:
            await self.run_refresh()
        except Exception as e:
            self.logger.error("refresh_job_failed", error=str(e), exc_info=True)

    async def run_refresh(self, collection: Optional[str] = None) -> RefreshJobResult:
        """Run one refresh over featured listings with a fresh session."""
        self.logger.info("starting_refresh_job", collection=collection or "ALL")

        async with self.db_session_factory() as db:
            partner_client = AmazonPartnerClient() if settings.has_amazon_credentials() else None
            service = PriceRefreshService(
                ListingService(db),
                partner_client=partner_client,
            )
            result = await service.refresh(collection)

        self.logger.info(
            "refresh_job_completed",
            updated=result.updated,
            failed=result.failed,
            total=result.total,
        )
        return result
