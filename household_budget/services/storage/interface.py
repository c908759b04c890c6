"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the billing engine decoupled from storage implementation

The interface is intentionally narrow - we're not building a full ORM.
The billing engine needs exactly three things from storage:
- due subscriptions for a scope
- "does a posting with this idempotency key exist?"
- insert a posting, advance a due date
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from household_budget.models.audit import AuditEvent
from household_budget.models.billing import BillingScope
from household_budget.models.expense import Expense, NewExpense
from household_budget.models.subscription import Subscription


class SubscriptionStorageInterface(ABC):
    """
    Abstract interface for subscription storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_subscription(self, subscription: Subscription) -> Subscription:
        """
        Insert a new subscription.

        The `id` on the passed record is ignored; the store assigns one.

        Returns:
            The stored subscription with its assigned id

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        """
        Retrieve a subscription by its ID.

        Returns:
            The subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_subscription(self, subscription: Subscription) -> Subscription:
        """
        Replace all fields of an existing subscription.

        Raises:
            NotFoundError: If subscription doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def update_next_due_date(
        self,
        subscription_id: int,
        next_due_date: date,
    ) -> None:
        """
        Move a subscription's next due date.

        Only this field changes, so an edit made by the owner while a
        billing run is in flight is not overwritten.

        Raises:
            NotFoundError: If subscription doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_subscription(self, subscription_id: int) -> bool:
        """
        Delete a subscription by ID.

        Returns:
            True if a subscription was deleted
        """
        pass

    @abstractmethod
    async def list_subscriptions(
        self,
        household_id: int,
        active_only: bool = False,
    ) -> list[Subscription]:
        """
        List a household's subscriptions, ordered by description.
        """
        pass

    @abstractmethod
    async def find_due(
        self,
        scope: BillingScope,
        as_of: date,
    ) -> list[Subscription]:
        """
        Active subscriptions in scope with next_due_date <= as_of.

        Returns current state; implementations must not cache between calls.
        """
        pass

    async def count_unreadable(self, scope: BillingScope) -> int:
        """
        Number of stored records in scope that cannot be loaded.

        find_due cannot return such records, so a billing run reports
        them separately. Backends that validate on write never have any.
        """
        return 0


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage.

    CRITICAL: Implementations must reject a second expense with an
    idempotency key that is already stored, by raising DuplicateError.
    """

    @abstractmethod
    async def expense_exists(self, idempotency_key: str) -> bool:
        """
        Check if a posting with this idempotency key exists.
        """
        pass

    @abstractmethod
    async def insert_expense(self, expense: NewExpense) -> Expense:
        """
        Insert an expense.

        Returns:
            The stored expense with its assigned id

        Raises:
            DuplicateError: If the idempotency key is already used
            StorageError: If insert fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        household_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        """
        List a household's expenses, newest first.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one billing run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
