"""
Subscription Lifecycle Service

Create, edit, pause/resume and delete subscriptions, keeping the
schedule consistent with the billing engine:

- create: next_due_date = first occurrence after today
- edit: next_due_date recomputed when frequency or day_of_month change,
  or when the edit reactivates the subscription (only if it ends up active)
- deactivate: next_due_date frozen
- reactivate: next_due_date recomputed from today; periods missed while
  paused are never posted
- delete: gone from the next billing run on

Tenant scope is explicit: a subscription belonging to another household
is reported as not found.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from household_budget.audit import AuditLogger
from household_budget.billing.recurrence import initial_due_date
from household_budget.config import AppSettings, get_settings
from household_budget.models.subscription import (
    Frequency,
    Owner,
    Subscription,
    SubscriptionCreate,
    SubscriptionPage,
    SubscriptionUpdate,
)
from household_budget.services.storage import NotFoundError, SubscriptionStorageInterface

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 200


class FrequencyNotAllowedError(ValueError):
    """Frequency exists but may not be chosen for new schedules."""
    pass


class SubscriptionService:
    """Subscription CRUD with due-date bookkeeping."""

    def __init__(
        self,
        storage: SubscriptionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], date]] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock or date.today
        self._settings = settings or get_settings().app

    def _check_frequency_allowed(self, frequency: Frequency) -> None:
        if frequency is Frequency.WEEKLY and not self._settings.allow_weekly_subscriptions:
            raise FrequencyNotAllowedError(
                "WEEKLY subscriptions are no longer accepted; use MONTHLY or YEARLY"
            )

    async def list_subscriptions(self, owner: Owner) -> list[Subscription]:
        return await self._storage.list_subscriptions(owner.household_id)

    async def list_subscriptions_page(
        self,
        owner: Owner,
        page: int,
        size: int,
    ) -> SubscriptionPage:
        """
        One page of the household's subscriptions.

        Pages are numbered from 0; size is capped at MAX_PAGE_SIZE.
        """
        size = min(size, MAX_PAGE_SIZE)
        subscriptions = await self._storage.list_subscriptions(owner.household_id)
        start = page * size
        return SubscriptionPage(
            items=subscriptions[start:start + size],
            total=len(subscriptions),
            page=page,
            size=size,
        )

    async def list_active_subscriptions(self, owner: Owner) -> list[Subscription]:
        return await self._storage.list_subscriptions(owner.household_id, active_only=True)

    async def get_subscription(self, subscription_id: int, owner: Owner) -> Subscription:
        """
        Raises:
            NotFoundError: If missing or owned by another household
        """
        subscription = await self._storage.get_subscription(subscription_id)
        if subscription is None or subscription.household_id != owner.household_id:
            raise NotFoundError(f"Subscription not found with ID: {subscription_id}")
        return subscription

    def _build_subscription(self, request: SubscriptionCreate, owner: Owner) -> Subscription:
        self._check_frequency_allowed(request.frequency)
        return Subscription(
            description=request.description,
            amount=request.amount,
            currency=request.currency,
            category=request.category,
            frequency=request.frequency.value,
            day_of_month=request.day_of_month,
            active=True if request.active is None else request.active,
            next_due_date=initial_due_date(
                request.frequency, request.day_of_month, self._clock()
            ),
            user_id=owner.user_id,
            household_id=owner.household_id,
        )

    async def create_subscription(
        self,
        request: SubscriptionCreate,
        owner: Owner,
    ) -> Subscription:
        stored = await self._storage.save_subscription(
            self._build_subscription(request, owner)
        )
        await self._after_create(stored)
        return stored

    async def create_subscriptions(
        self,
        requests: list[SubscriptionCreate],
        owner: Owner,
    ) -> list[Subscription]:
        """
        Create several subscriptions.

        All requests are checked before anything is stored.
        """
        if not requests:
            raise ValueError("Subscription list cannot be empty")

        pending = [self._build_subscription(request, owner) for request in requests]
        created = []
        for subscription in pending:
            stored = await self._storage.save_subscription(subscription)
            await self._after_create(stored)
            created.append(stored)
        return created

    async def _after_create(self, subscription: Subscription) -> None:
        logger.info(
            "subscription_created",
            subscription_id=subscription.id,
            household_id=subscription.household_id,
            frequency=subscription.frequency,
            next_due_date=subscription.next_due_date.isoformat(),
        )
        if self._audit_logger:
            await self._audit_logger.log_subscription_created(
                subscription_id=subscription.id,
                description=subscription.description,
                frequency=subscription.frequency,
                next_due_date=subscription.next_due_date,
                household_id=subscription.household_id,
            )

    async def update_subscription(
        self,
        subscription_id: int,
        request: SubscriptionUpdate,
        owner: Owner,
    ) -> Subscription:
        current = await self.get_subscription(subscription_id, owner)

        if request.frequency.value != current.frequency:
            self._check_frequency_allowed(request.frequency)

        active = current.active if request.active is None else request.active
        schedule_changed = (
            request.frequency.value != current.frequency
            or request.day_of_month != current.day_of_month
        )
        reactivated = active and not current.active
        recompute = active and (schedule_changed or reactivated)

        next_due = current.next_due_date
        if recompute:
            next_due = initial_due_date(request.frequency, request.day_of_month, self._clock())

        updated = current.model_copy(update={
            "description": request.description,
            "amount": request.amount,
            "currency": request.currency,
            "category": request.category,
            "frequency": request.frequency.value,
            "day_of_month": request.day_of_month,
            "active": active,
            "next_due_date": next_due,
        })
        stored = await self._storage.update_subscription(updated)

        logger.info(
            "subscription_updated",
            subscription_id=stored.id,
            schedule_recomputed=recompute,
        )
        if self._audit_logger:
            await self._audit_logger.log_subscription_updated(
                subscription_id=stored.id,
                schedule_recomputed=recompute,
                next_due_date=stored.next_due_date,
                household_id=stored.household_id,
            )
        return stored

    async def toggle_active(self, subscription_id: int, owner: Owner) -> Subscription:
        current = await self.get_subscription(subscription_id, owner)

        active = not current.active
        changes = {"active": active}
        if active:
            changes["next_due_date"] = initial_due_date(
                current.frequency, current.day_of_month, self._clock()
            )

        stored = await self._storage.update_subscription(current.model_copy(update=changes))

        logger.info(
            "subscription_toggled",
            subscription_id=stored.id,
            active=stored.active,
            next_due_date=stored.next_due_date.isoformat() if stored.next_due_date else None,
        )
        if self._audit_logger:
            await self._audit_logger.log_subscription_toggled(
                subscription_id=stored.id,
                active=stored.active,
                next_due_date=stored.next_due_date,
                household_id=stored.household_id,
            )
        return stored

    async def delete_subscription(self, subscription_id: int, owner: Owner) -> None:
        current = await self.get_subscription(subscription_id, owner)
        await self._storage.delete_subscription(current.id)

        logger.info("subscription_deleted", subscription_id=current.id)
        if self._audit_logger:
            await self._audit_logger.log_subscription_deleted(
                subscription_id=current.id,
                household_id=current.household_id,
            )
