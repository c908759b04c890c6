"""
Tests for subscription lifecycle rules.

The clock starts at 2024-03-15 and is moved forward where a rule
depends on "today".
"""

from datetime import date
from decimal import Decimal

import pytest

from household_budget.config import AppSettings
from household_budget.models import (
    AuditEventType,
    Frequency,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from household_budget.services.storage import NotFoundError
from household_budget.services.subscriptions import (
    FrequencyNotAllowedError,
    MAX_PAGE_SIZE,
    SubscriptionService,
)


def create_request(**overrides) -> SubscriptionCreate:
    fields = {
        "description": "Spotify",
        "amount": Decimal("9.99"),
        "currency": "eur",
        "category": "Subscriptions",
        "day_of_month": 20,
    }
    fields.update(overrides)
    return SubscriptionCreate(**fields)


def update_request(subscription, **overrides) -> SubscriptionUpdate:
    fields = {
        "description": subscription.description,
        "amount": subscription.amount,
        "currency": subscription.currency,
        "category": subscription.category,
        "frequency": Frequency(subscription.frequency),
        "day_of_month": subscription.day_of_month,
    }
    fields.update(overrides)
    return SubscriptionUpdate(**fields)


@pytest.fixture
def service(subscription_storage, audit_logger, clock, app_settings):
    return SubscriptionService(
        subscription_storage,
        audit_logger=audit_logger,
        clock=clock,
        settings=app_settings,
    )


class TestCreateSubscription:
    """New subscriptions are scheduled from today."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, service, owner):
        subscription = await service.create_subscription(create_request(), owner)

        assert subscription.id is not None
        assert subscription.frequency == "MONTHLY"
        assert subscription.currency == "EUR"
        assert subscription.active is True
        assert subscription.next_due_date == date(2024, 3, 20)
        assert subscription.user_id == owner.user_id
        assert subscription.household_id == owner.household_id

    @pytest.mark.asyncio
    async def test_billing_day_today_starts_next_month(self, service, owner):
        subscription = await service.create_subscription(
            create_request(day_of_month=15), owner
        )
        assert subscription.next_due_date == date(2024, 4, 15)

    @pytest.mark.asyncio
    async def test_create_paused(self, service, owner):
        subscription = await service.create_subscription(
            create_request(active=False), owner
        )
        assert subscription.active is False

    @pytest.mark.asyncio
    async def test_weekly_rejected_by_default(self, service, owner, subscription_storage):
        with pytest.raises(FrequencyNotAllowedError):
            await service.create_subscription(
                create_request(frequency=Frequency.WEEKLY), owner
            )
        assert await subscription_storage.list_subscriptions(owner.household_id) == []

    @pytest.mark.asyncio
    async def test_weekly_allowed_when_enabled(self, subscription_storage, clock, owner):
        service = SubscriptionService(
            subscription_storage,
            clock=clock,
            settings=AppSettings(_env_file=None, allow_weekly_subscriptions=True),
        )

        subscription = await service.create_subscription(
            create_request(frequency=Frequency.WEEKLY), owner
        )

        assert subscription.frequency == "WEEKLY"

    @pytest.mark.asyncio
    async def test_create_is_audited(self, service, owner, audit_storage):
        subscription = await service.create_subscription(create_request(), owner)

        events = await audit_storage.get_events_by_entity("subscription", str(subscription.id))
        assert [e.event_type for e in events] == [AuditEventType.SUBSCRIPTION_CREATED]
        assert events[0].details["next_due_date"] == "2024-03-20"


class TestBulkCreate:
    """Several subscriptions in one request."""

    @pytest.mark.asyncio
    async def test_creates_all(self, service, owner):
        created = await service.create_subscriptions(
            [create_request(description="Spotify"), create_request(description="iCloud")],
            owner,
        )
        assert [s.description for s in created] == ["Spotify", "iCloud"]
        assert len({s.id for s in created}) == 2

    @pytest.mark.asyncio
    async def test_empty_list_rejected(self, service, owner):
        with pytest.raises(ValueError):
            await service.create_subscriptions([], owner)

    @pytest.mark.asyncio
    async def test_one_invalid_request_stores_nothing(
        self, service, owner, subscription_storage
    ):
        with pytest.raises(FrequencyNotAllowedError):
            await service.create_subscriptions(
                [create_request(), create_request(frequency=Frequency.WEEKLY)],
                owner,
            )
        assert await subscription_storage.list_subscriptions(owner.household_id) == []


class TestUpdateSubscription:
    """Edits only reschedule when the schedule itself changes."""

    @pytest.mark.asyncio
    async def test_amount_change_keeps_due_date(self, service, owner, clock):
        subscription = await service.create_subscription(create_request(), owner)
        clock.today = date(2024, 3, 25)

        updated = await service.update_subscription(
            subscription.id,
            update_request(subscription, amount=Decimal("11.99")),
            owner,
        )

        assert updated.amount == Decimal("11.99")
        assert updated.next_due_date == date(2024, 3, 20)

    @pytest.mark.asyncio
    async def test_day_change_recomputes_from_today(self, service, owner, clock):
        subscription = await service.create_subscription(create_request(), owner)
        clock.today = date(2024, 3, 25)

        updated = await service.update_subscription(
            subscription.id,
            update_request(subscription, day_of_month=10),
            owner,
        )

        assert updated.next_due_date == date(2024, 4, 10)

    @pytest.mark.asyncio
    async def test_frequency_change_recomputes(self, service, owner):
        subscription = await service.create_subscription(create_request(), owner)

        updated = await service.update_subscription(
            subscription.id,
            update_request(subscription, frequency=Frequency.YEARLY, day_of_month=1),
            owner,
        )

        assert updated.frequency == "YEARLY"
        assert updated.next_due_date == date(2025, 3, 1)

    @pytest.mark.asyncio
    async def test_schedule_change_on_paused_subscription_keeps_due_date(
        self, service, owner
    ):
        subscription = await service.create_subscription(
            create_request(active=False), owner
        )

        updated = await service.update_subscription(
            subscription.id,
            update_request(subscription, day_of_month=5),
            owner,
        )

        assert updated.active is False
        assert updated.next_due_date == subscription.next_due_date

    @pytest.mark.asyncio
    async def test_reactivating_update_recomputes(self, service, owner, clock):
        subscription = await service.create_subscription(
            create_request(active=False), owner
        )
        clock.today = date(2024, 6, 1)

        updated = await service.update_subscription(
            subscription.id,
            update_request(subscription, active=True),
            owner,
        )

        assert updated.active is True
        assert updated.next_due_date == date(2024, 6, 20)

    @pytest.mark.asyncio
    async def test_switching_to_weekly_rejected(self, service, owner):
        subscription = await service.create_subscription(create_request(), owner)

        with pytest.raises(FrequencyNotAllowedError):
            await service.update_subscription(
                subscription.id,
                update_request(subscription, frequency=Frequency.WEEKLY),
                owner,
            )

    @pytest.mark.asyncio
    async def test_existing_weekly_subscription_stays_editable(
        self, service, owner, subscription_storage, subscription_factory
    ):
        legacy = await subscription_storage.save_subscription(
            subscription_factory(frequency="WEEKLY")
        )

        updated = await service.update_subscription(
            legacy.id,
            update_request(legacy, amount=Decimal("3.50")),
            owner,
        )

        assert updated.frequency == "WEEKLY"
        assert updated.amount == Decimal("3.50")

    @pytest.mark.asyncio
    async def test_other_household_is_not_found(self, service, owner, other_owner):
        subscription = await service.create_subscription(create_request(), owner)

        with pytest.raises(NotFoundError):
            await service.update_subscription(
                subscription.id, update_request(subscription), other_owner
            )


class TestToggleActive:
    """Pausing freezes the schedule; resuming restarts it from today."""

    @pytest.mark.asyncio
    async def test_deactivate_keeps_due_date(self, service, owner):
        subscription = await service.create_subscription(create_request(), owner)

        paused = await service.toggle_active(subscription.id, owner)

        assert paused.active is False
        assert paused.next_due_date == date(2024, 3, 20)

    @pytest.mark.asyncio
    async def test_reactivate_skips_missed_periods(self, service, owner, clock):
        subscription = await service.create_subscription(create_request(), owner)
        await service.toggle_active(subscription.id, owner)
        clock.today = date(2024, 7, 25)

        resumed = await service.toggle_active(subscription.id, owner)

        assert resumed.active is True
        assert resumed.next_due_date == date(2024, 8, 20)

    @pytest.mark.asyncio
    async def test_toggle_is_audited(self, service, owner, audit_storage):
        subscription = await service.create_subscription(create_request(), owner)
        await service.toggle_active(subscription.id, owner)
        await service.toggle_active(subscription.id, owner)

        events = await audit_storage.get_events_by_entity("subscription", str(subscription.id))
        assert [e.event_type for e in events] == [
            AuditEventType.SUBSCRIPTION_CREATED,
            AuditEventType.SUBSCRIPTION_DEACTIVATED,
            AuditEventType.SUBSCRIPTION_ACTIVATED,
        ]

    @pytest.mark.asyncio
    async def test_other_household_is_not_found(self, service, owner, other_owner):
        subscription = await service.create_subscription(create_request(), owner)

        with pytest.raises(NotFoundError):
            await service.toggle_active(subscription.id, other_owner)


class TestListAndDelete:

    @pytest.mark.asyncio
    async def test_lists_are_household_scoped(self, service, owner, other_owner):
        await service.create_subscription(create_request(description="Spotify"), owner)
        await service.create_subscription(create_request(description="Disney+"), other_owner)

        mine = await service.list_subscriptions(owner)

        assert [s.description for s in mine] == ["Spotify"]

    @pytest.mark.asyncio
    async def test_active_list_excludes_paused(self, service, owner):
        await service.create_subscription(create_request(description="Spotify"), owner)
        await service.create_subscription(
            create_request(description="Audible", active=False), owner
        )

        active = await service.list_active_subscriptions(owner)

        assert [s.description for s in active] == ["Spotify"]

    @pytest.mark.asyncio
    async def test_list_sorted_by_description(self, service, owner):
        await service.create_subscription(create_request(description="spotify"), owner)
        await service.create_subscription(create_request(description="Apple TV"), owner)

        listed = await service.list_subscriptions(owner)

        assert [s.description for s in listed] == ["Apple TV", "spotify"]

    @pytest.mark.asyncio
    async def test_page_slices_sorted_list(self, service, owner, other_owner):
        for name in ["Netflix", "Audible", "Spotify", "Disney+", "Gym"]:
            await service.create_subscription(create_request(description=name), owner)
        await service.create_subscription(create_request(description="Zeit"), other_owner)

        first = await service.list_subscriptions_page(owner, page=0, size=2)
        last = await service.list_subscriptions_page(owner, page=2, size=2)
        beyond = await service.list_subscriptions_page(owner, page=5, size=2)

        assert [s.description for s in first.items] == ["Audible", "Disney+"]
        assert [s.description for s in last.items] == ["Spotify"]
        assert beyond.items == []
        assert first.total == last.total == beyond.total == 5

    @pytest.mark.asyncio
    async def test_page_size_is_capped(self, service, owner):
        await service.create_subscription(create_request(), owner)

        result = await service.list_subscriptions_page(owner, page=0, size=1000)

        assert result.size == MAX_PAGE_SIZE
        assert len(result.items) == 1

    @pytest.mark.asyncio
    async def test_delete(self, service, owner):
        subscription = await service.create_subscription(create_request(), owner)

        await service.delete_subscription(subscription.id, owner)

        with pytest.raises(NotFoundError):
            await service.get_subscription(subscription.id, owner)

    @pytest.mark.asyncio
    async def test_delete_other_household_is_not_found(
        self, service, owner, other_owner, subscription_storage
    ):
        subscription = await service.create_subscription(create_request(), owner)

        with pytest.raises(NotFoundError):
            await service.delete_subscription(subscription.id, other_owner)
        assert await subscription_storage.get_subscription(subscription.id) is not None
