"""
Tests for the daily billing scheduler.
"""

from datetime import date

import pytest

from household_budget.billing import DAILY_BILLING_JOB_ID, BillingProcessor, BillingScheduler
from household_budget.config import SchedulerSettings
from household_budget.models import BillingScope
from household_budget.services.storage import InMemorySubscriptionStorage, StorageError


class UnavailableSubscriptionStorage(InMemorySubscriptionStorage):

    async def find_due(self, scope, as_of):
        raise StorageError("Spreadsheet not reachable")


def scheduler_settings(**overrides) -> SchedulerSettings:
    return SchedulerSettings(_env_file=None, **overrides)


@pytest.fixture
def processor(subscription_storage, expense_storage, clock, app_settings):
    return BillingProcessor(
        subscription_storage,
        expense_storage,
        clock=clock,
        settings=app_settings,
    )


class TestTrigger:
    """Cron trigger built from settings."""

    def test_default_time_is_0005(self, processor):
        scheduler = BillingScheduler(processor, settings=scheduler_settings())

        fields = {f.name: str(f) for f in scheduler.build_trigger().fields}

        assert fields["hour"] == "0"
        assert fields["minute"] == "5"

    def test_custom_time(self, processor):
        scheduler = BillingScheduler(
            processor, settings=scheduler_settings(hour=3, minute=30, timezone="UTC")
        )

        trigger = scheduler.build_trigger()
        fields = {f.name: str(f) for f in trigger.fields}

        assert fields["hour"] == "3"
        assert fields["minute"] == "30"
        assert str(trigger.timezone) == "UTC"


class TestLifecycle:
    """start() and shutdown() are explicit and idempotent."""

    def test_not_running_before_start(self, processor):
        scheduler = BillingScheduler(processor, settings=scheduler_settings())

        assert scheduler.running is False
        assert scheduler.next_run_time() is None

    @pytest.mark.asyncio
    async def test_start_registers_daily_job(self, processor):
        scheduler = BillingScheduler(processor, settings=scheduler_settings())

        scheduler.start()
        try:
            assert scheduler.running is True
            assert scheduler._scheduler.get_job(DAILY_BILLING_JOB_ID) is not None
            next_run = scheduler.next_run_time()
            assert next_run is not None
            assert (next_run.hour, next_run.minute) == (0, 5)
        finally:
            scheduler.shutdown()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_job(self, processor):
        scheduler = BillingScheduler(processor, settings=scheduler_settings())

        scheduler.start()
        scheduler.start()
        try:
            assert len(scheduler._scheduler.get_jobs()) == 1
        finally:
            scheduler.shutdown()

    def test_shutdown_without_start(self, processor):
        scheduler = BillingScheduler(processor, settings=scheduler_settings())
        scheduler.shutdown()
        assert scheduler.running is False


class TestRunDaily:
    """The scheduled job bills every household and never raises."""

    @pytest.mark.asyncio
    async def test_bills_all_households(
        self, processor, subscription_storage, subscription_factory
    ):
        await subscription_storage.save_subscription(subscription_factory())
        await subscription_storage.save_subscription(
            subscription_factory(user_id=2, household_id=20)
        )
        scheduler = BillingScheduler(processor, settings=scheduler_settings())

        report = await scheduler.run_daily()

        assert report.scope == BillingScope.all_households()
        assert report.as_of == date(2024, 3, 15)
        assert report.created_count == 2

    @pytest.mark.asyncio
    async def test_failed_run_returns_none(self, expense_storage, clock, app_settings):
        processor = BillingProcessor(
            UnavailableSubscriptionStorage(),
            expense_storage,
            clock=clock,
            settings=app_settings,
        )
        scheduler = BillingScheduler(processor, settings=scheduler_settings())

        assert await scheduler.run_daily() is None
