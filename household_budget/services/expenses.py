"""
Expense Service

Records manual expenses. An expense that repeats (tagged with a
frequency, or filed under the subscription category) also derives a
subscription so future periods are posted by the billing engine.

Deriving the subscription is best-effort: the expense the user entered
is always kept. A failed derivation surfaces as AutoSubscriptionError on
the result and in the audit log.
"""

from datetime import date
from typing import Optional

import structlog

from household_budget.audit import AuditLogger
from household_budget.config import AppSettings, get_settings
from household_budget.models.expense import (
    Expense,
    ExpenseCreate,
    ExpenseCreationResult,
    NewExpense,
)
from household_budget.models.subscription import (
    Frequency,
    Owner,
    SubscriptionCreate,
)
from household_budget.services.storage import ExpenseStorageInterface, StorageError
from household_budget.services.subscriptions import SubscriptionService

logger = structlog.get_logger(__name__)


class AutoSubscriptionError(Exception):
    """A recurring expense was saved but its subscription could not be created."""

    def __init__(self, expense_id: int, cause: Exception):
        self.expense_id = expense_id
        self.cause = cause
        super().__init__(
            f"Subscription for expense {expense_id} was not created: {cause}"
        )


class ExpenseService:
    """Manual expense entry."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        subscription_service: SubscriptionService,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._subscriptions = subscription_service
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    def _is_recurring(self, request: ExpenseCreate) -> bool:
        return (
            request.frequency is not None
            or request.category.lower() == self._settings.subscription_category.lower()
        )

    async def create_expense(
        self,
        request: ExpenseCreate,
        owner: Owner,
    ) -> ExpenseCreationResult:
        """
        Save an expense and, if it repeats, derive a subscription.

        Raises:
            StorageError: If the expense itself cannot be saved
        """
        expense = await self._storage.insert_expense(NewExpense(
            description=request.description,
            amount=request.amount,
            currency=request.currency,
            category=request.category,
            date=request.date,
            user_id=owner.user_id,
            household_id=owner.household_id,
        ))

        logger.info("expense_created", expense_id=expense.id, household_id=owner.household_id)
        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                expense_id=expense.id,
                description=expense.description,
                amount=str(expense.amount),
                currency=expense.currency,
                household_id=owner.household_id,
            )

        result = ExpenseCreationResult(expense=expense)
        if not self._is_recurring(request):
            return result

        try:
            result.subscription = await self._derive_subscription(expense, request, owner)
        except AutoSubscriptionError as e:
            result.auto_subscription_error = str(e)
            logger.warning(
                "auto_subscription_failed",
                expense_id=expense.id,
                error=str(e.cause),
            )
            if self._audit_logger:
                await self._audit_logger.log_auto_subscription_failed(
                    expense_id=expense.id,
                    error_message=str(e.cause),
                    household_id=owner.household_id,
                )

        return result

    async def _derive_subscription(
        self,
        expense: Expense,
        request: ExpenseCreate,
        owner: Owner,
    ):
        """
        Raises:
            AutoSubscriptionError: wrapping the validation or storage failure
        """
        try:
            subscription_request = SubscriptionCreate(
                description=request.description,
                amount=request.amount,
                currency=request.currency,
                category=expense.category,
                frequency=request.frequency or Frequency.MONTHLY,
                day_of_month=request.day_of_month or request.date.day,
                active=True,
            )
            subscription = await self._subscriptions.create_subscription(
                subscription_request, owner
            )
        except (ValueError, StorageError) as e:
            raise AutoSubscriptionError(expense.id, e) from e

        logger.info(
            "auto_subscription_created",
            expense_id=expense.id,
            subscription_id=subscription.id,
            frequency=subscription.frequency,
        )
        return subscription

    async def list_expenses(
        self,
        owner: Owner,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        return await self._storage.list_expenses(
            owner.household_id,
            date_from=date_from,
            date_to=date_to,
        )
