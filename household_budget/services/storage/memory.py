"""
In-Memory Storage Implementation

Used for tests, local development and as the fallback when Google Sheets
is not configured. Data lives for the lifetime of the process.

Records are stored as model copies, so callers never share mutable
state with the store.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from household_budget.models.audit import AuditEvent
from household_budget.models.billing import BillingScope
from household_budget.models.expense import Expense, NewExpense
from household_budget.models.subscription import Subscription
from household_budget.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    SubscriptionStorageInterface,
)


class InMemorySubscriptionStorage(SubscriptionStorageInterface):
    """Subscriptions keyed by id."""

    def __init__(self):
        self._rows: dict[int, Subscription] = {}
        self._next_id = 1

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        stored = subscription.model_copy(update={"id": self._next_id})
        self._rows[stored.id] = stored
        self._next_id += 1
        return stored.model_copy()

    async def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        row = self._rows.get(subscription_id)
        return row.model_copy() if row else None

    async def update_subscription(self, subscription: Subscription) -> Subscription:
        if subscription.id not in self._rows:
            raise NotFoundError(f"Subscription not found: {subscription.id}")
        self._rows[subscription.id] = subscription.model_copy()
        return subscription.model_copy()

    async def update_next_due_date(
        self,
        subscription_id: int,
        next_due_date: date,
    ) -> None:
        row = self._rows.get(subscription_id)
        if row is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        self._rows[subscription_id] = row.model_copy(update={"next_due_date": next_due_date})

    async def delete_subscription(self, subscription_id: int) -> bool:
        return self._rows.pop(subscription_id, None) is not None

    async def list_subscriptions(
        self,
        household_id: int,
        active_only: bool = False,
    ) -> list[Subscription]:
        rows = [
            row.model_copy()
            for row in self._rows.values()
            if row.household_id == household_id and (row.active or not active_only)
        ]
        rows.sort(key=lambda s: (s.description.lower(), s.id))
        return rows

    async def find_due(
        self,
        scope: BillingScope,
        as_of: date,
    ) -> list[Subscription]:
        return [
            row.model_copy()
            for row in self._rows.values()
            if row.active
            and row.next_due_date is not None
            and row.next_due_date <= as_of
            and scope.includes(row.household_id)
        ]


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses keyed by id, with a unique index on idempotency key."""

    def __init__(self):
        self._rows: dict[int, Expense] = {}
        self._by_key: dict[str, int] = {}
        self._next_id = 1

    async def expense_exists(self, idempotency_key: str) -> bool:
        return idempotency_key in self._by_key

    async def insert_expense(self, expense: NewExpense) -> Expense:
        key = expense.idempotency_key
        if key is not None and key in self._by_key:
            raise DuplicateError(f"Expense already exists for key: {key}")

        stored = Expense(
            id=self._next_id,
            created_at=datetime.utcnow(),
            **expense.model_dump(),
        )
        self._rows[stored.id] = stored
        if key is not None:
            self._by_key[key] = stored.id
        self._next_id += 1
        return stored.model_copy()

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        row = self._rows.get(expense_id)
        return row.model_copy() if row else None

    async def list_expenses(
        self,
        household_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        rows = []
        for row in self._rows.values():
            if row.household_id != household_id:
                continue
            if date_from and row.date < date_from:
                continue
            if date_to and row.date > date_to:
                continue
            rows.append(row.model_copy())

        rows.sort(key=lambda e: (e.date, e.id), reverse=True)
        return rows


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
