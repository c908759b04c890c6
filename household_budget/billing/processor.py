"""
Billing Processor

Turns due subscriptions into expense postings.

For every active subscription in scope with next_due_date <= as_of:
1. Build the idempotency key for (subscription, due date)
2. Key already stored → the date was posted before; skip the insert
3. Otherwise insert the posting (a DuplicateError here also means "posted")
4. Advance next_due_date from the processed due date, not from today
5. Persist the new due date, whether or not a posting was created
6. Repeat while the subscription is still due, so missed periods are
   caught up in a single run

GUARANTEES:
- At most one posting per due date (idempotency key is unique in storage)
- A crash between insert and advance is safe: the next run finds the key,
  skips the insert and advances
- One failing subscription never stops the rest of the batch; it keeps
  its last durable due date and is retried on the next run
- Two runs (daily job and a "process now" request) never work on the
  same subscription at the same time
"""

import asyncio
import weakref
from datetime import date, datetime
from typing import Callable, Optional

import structlog

from household_budget.audit import AuditLogger
from household_budget.billing.recurrence import (
    idempotency_key,
    next_due_date,
)
from household_budget.config import AppSettings, get_settings
from household_budget.models.billing import (
    BillingScope,
    ProcessingFailure,
    ProcessingReport,
)
from household_budget.models.expense import NewExpense
from household_budget.models.subscription import Subscription
from household_budget.services.storage import (
    DuplicateError,
    ExpenseStorageInterface,
    StorageError,
    SubscriptionStorageInterface,
)

logger = structlog.get_logger(__name__)


class BillingProcessor:
    """
    Posts expenses for due subscriptions.

    Safe to call concurrently with different scopes: each subscription is
    processed under its own lock, and re-read from storage once the lock
    is held.
    """

    def __init__(
        self,
        subscription_storage: SubscriptionStorageInterface,
        expense_storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], date]] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._subscriptions = subscription_storage
        self._expenses = expense_storage
        self._audit_logger = audit_logger
        self._clock = clock or date.today
        self._suffix = (settings or get_settings().app).auto_generated_suffix
        # Entries vanish once no run holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def process(
        self,
        scope: BillingScope,
        as_of: Optional[date] = None,
    ) -> ProcessingReport:
        """
        Post every due date in scope up to and including `as_of`.

        Args:
            scope: All households, or a single household
            as_of: Billing date; defaults to today

        Returns:
            Report listing the postings this run created

        Raises:
            StorageError: If the due subscriptions cannot be queried at all
        """
        as_of = as_of or self._clock()
        report = ProcessingReport(scope=scope, as_of=as_of)
        log = logger.bind(
            correlation_id=str(report.correlation_id),
            scope=scope.describe(),
        )

        log.info("billing_run_started", as_of=as_of.isoformat())
        if self._audit_logger:
            await self._audit_logger.log_billing_run_started(
                scope=scope.describe(),
                as_of=as_of,
                correlation_id=report.correlation_id,
            )

        try:
            due = await self._subscriptions.find_due(scope, as_of)
            report.unreadable_records = await self._subscriptions.count_unreadable(scope)
        except StorageError as e:
            log.error("billing_run_query_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="billing_run_query_failed",
                    error_message=str(e),
                    correlation_id=report.correlation_id,
                )
            raise

        if report.unreadable_records:
            log.warning("unreadable_subscriptions", count=report.unreadable_records)

        report.subscriptions_seen = len(due)
        for subscription in due:
            await self._process_subscription(subscription.id, report)

        report.finished_at = datetime.utcnow()
        log.info("billing_run_completed", **report.summary())
        if self._audit_logger:
            await self._audit_logger.log_billing_run_completed(
                summary=report.summary(),
                correlation_id=report.correlation_id,
            )

        return report

    async def _process_subscription(
        self,
        subscription_id: int,
        report: ProcessingReport,
    ) -> None:
        """Catch up one subscription, recording a failure instead of raising."""
        async with self._lock_for(subscription_id):
            due_date = None
            try:
                while True:
                    subscription = await self._subscriptions.get_subscription(subscription_id)
                    if not self._is_due(subscription, report.as_of):
                        break
                    if subscription.next_due_date == due_date:
                        # Advance did not stick; leave it for the next run
                        logger.warning(
                            "due_date_not_advanced",
                            subscription_id=subscription_id,
                            due_date=due_date.isoformat(),
                        )
                        break

                    due_date = subscription.next_due_date
                    await self._post_due_date(subscription, report)

            # ValueError covers unknown frequencies and postings that fail validation
            except (StorageError, ValueError) as e:
                await self._record_failure(subscription_id, due_date, e, report)

    def _lock_for(self, subscription_id: int) -> asyncio.Lock:
        lock = self._locks.get(subscription_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subscription_id] = lock
        return lock

    @staticmethod
    def _is_due(subscription: Optional[Subscription], as_of: date) -> bool:
        return (
            subscription is not None
            and subscription.active
            and subscription.next_due_date is not None
            and subscription.next_due_date <= as_of
        )

    async def _post_due_date(
        self,
        subscription: Subscription,
        report: ProcessingReport,
    ) -> None:
        """Post one due date (unless already posted) and advance past it."""
        due_date = subscription.next_due_date
        key = idempotency_key(subscription.id, due_date)

        # Computed before any write so an unknown frequency leaves no trace
        following = next_due_date(
            subscription.frequency,
            subscription.day_of_month,
            due_date,
        )

        if await self._expenses.expense_exists(key):
            await self._record_duplicate(subscription, key, report)
        else:
            posting = NewExpense.posting_for(subscription, due_date, key, self._suffix)
            try:
                expense = await self._expenses.insert_expense(posting)
            except DuplicateError:
                await self._record_duplicate(subscription, key, report)
            else:
                report.created.append(expense)
                logger.info(
                    "expense_posted",
                    subscription_id=subscription.id,
                    expense_id=expense.id,
                    idempotency_key=key,
                    amount=str(expense.amount),
                    currency=expense.currency,
                )
                if self._audit_logger:
                    await self._audit_logger.log_expense_posted(
                        subscription_id=subscription.id,
                        expense_id=expense.id,
                        idempotency_key=key,
                        correlation_id=report.correlation_id,
                    )

        await self._subscriptions.update_next_due_date(subscription.id, following)

    async def _record_duplicate(
        self,
        subscription: Subscription,
        key: str,
        report: ProcessingReport,
    ) -> None:
        report.skipped_duplicates += 1
        logger.info(
            "duplicate_posting_skipped",
            subscription_id=subscription.id,
            idempotency_key=key,
        )
        if self._audit_logger:
            await self._audit_logger.log_duplicate_skipped(
                subscription_id=subscription.id,
                idempotency_key=key,
                correlation_id=report.correlation_id,
            )

    async def _record_failure(
        self,
        subscription_id: int,
        due_date: Optional[date],
        error: Exception,
        report: ProcessingReport,
    ) -> None:
        failure = ProcessingFailure(
            subscription_id=subscription_id,
            due_date=due_date,
            error_type=type(error).__name__,
            message=str(error),
        )
        report.failures.append(failure)
        logger.error(
            "subscription_processing_failed",
            subscription_id=subscription_id,
            due_date=due_date.isoformat() if due_date else None,
            error_type=failure.error_type,
            error=failure.message,
        )
        if self._audit_logger:
            await self._audit_logger.log_posting_failed(
                subscription_id=subscription_id,
                due_date=due_date,
                error_type=failure.error_type,
                error_message=failure.message,
                correlation_id=report.correlation_id,
            )
