"""
Daily Billing Scheduler

Runs the billing processor across all households once a day
(00:05 server time by default).

Owned by the application lifespan: `start()` on startup, `shutdown()` on
exit. A failed run is logged and retried the next day; it never takes
the process down.
"""

from datetime import datetime
from typing import Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from household_budget.billing.processor import BillingProcessor
from household_budget.config import SchedulerSettings, get_settings
from household_budget.models.billing import BillingScope, ProcessingReport

logger = structlog.get_logger(__name__)

DAILY_BILLING_JOB_ID = "daily_subscription_billing"


class BillingScheduler:
    """Explicit lifecycle around an AsyncIOScheduler with one daily job."""

    def __init__(
        self,
        processor: BillingProcessor,
        settings: Optional[SchedulerSettings] = None,
    ):
        self._processor = processor
        self._settings = settings or get_settings().scheduler
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def build_trigger(self) -> CronTrigger:
        return CronTrigger(
            hour=self._settings.hour,
            minute=self._settings.minute,
            timezone=self._settings.timezone,
        )

    def start(self) -> None:
        """
        Register the daily job and start the scheduler.

        Must be called from within a running event loop.
        """
        if self.running:
            return

        scheduler = AsyncIOScheduler()
        scheduler.add_listener(self._job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
        scheduler.add_job(
            self.run_daily,
            self.build_trigger(),
            id=DAILY_BILLING_JOB_ID,
            name="Daily Subscription Billing",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            "billing_scheduler_started",
            hour=self._settings.hour,
            minute=self._settings.minute,
            next_run_time=self._format_next_run(),
        )

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("billing_scheduler_stopped")

    def next_run_time(self) -> Optional[datetime]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(DAILY_BILLING_JOB_ID)
        return job.next_run_time if job else None

    async def run_daily(self) -> Optional[ProcessingReport]:
        """
        Process all households.

        Returns the report, or None when the run could not complete.
        """
        try:
            report = await self._processor.process(BillingScope.all_households())
        except Exception as e:
            logger.exception("daily_billing_failed", error=str(e))
            return None

        logger.info("daily_billing_finished", **report.summary())
        return report

    def _format_next_run(self) -> Optional[str]:
        next_run = self.next_run_time()
        return next_run.isoformat() if next_run else None

    @staticmethod
    def _job_listener(event) -> None:
        """Log job execution results."""
        if event.exception:
            logger.error(
                "billing_job_failed",
                job_id=event.job_id,
                error=str(event.exception),
            )
        else:
            logger.debug("billing_job_executed", job_id=event.job_id)
