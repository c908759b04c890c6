"""
Main Orchestrator for Household Budget

Ties together storage, audit logging, the billing engine and the
subscription/expense services.

DESIGN DECISION: One BillingProcessor instance is shared by the daily
scheduler and the on-demand API. Its per-subscription locks only protect
against overlapping runs if both triggers go through the same instance.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from household_budget.audit import AuditLogger
from household_budget.billing import BillingProcessor, BillingScheduler
from household_budget.config import get_settings
from household_budget.services.expenses import ExpenseService
from household_budget.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsSubscriptionStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemorySubscriptionStorage,
    SubscriptionStorageInterface,
)
from household_budget.services.subscriptions import SubscriptionService

logger = structlog.get_logger(__name__)


class AppComponents:
    """Everything the API and the scheduler need, wired once."""

    def __init__(
        self,
        subscription_storage: SubscriptionStorageInterface,
        expense_storage: ExpenseStorageInterface,
        audit_storage: Optional[AuditStorageInterface] = None,
        clock: Optional[Callable[[], date]] = None,
        enable_scheduler: Optional[bool] = None,
    ):
        settings = get_settings()

        self.subscription_storage = subscription_storage
        self.expense_storage = expense_storage
        self.audit_storage = audit_storage
        self.audit_logger = AuditLogger(audit_storage)

        self.processor = BillingProcessor(
            subscription_storage,
            expense_storage,
            audit_logger=self.audit_logger,
            clock=clock,
        )
        self.subscription_service = SubscriptionService(
            subscription_storage,
            audit_logger=self.audit_logger,
            clock=clock,
        )
        self.expense_service = ExpenseService(
            expense_storage,
            self.subscription_service,
            audit_logger=self.audit_logger,
        )

        if enable_scheduler is None:
            enable_scheduler = settings.scheduler.enabled
        self.scheduler: Optional[BillingScheduler] = (
            BillingScheduler(self.processor) if enable_scheduler else None
        )


def _in_memory_components(**kwargs) -> AppComponents:
    return AppComponents(
        subscription_storage=InMemorySubscriptionStorage(),
        expense_storage=InMemoryExpenseStorage(),
        audit_storage=InMemoryAuditStorage(),
        **kwargs,
    )


def create_app_components(
    use_storage: bool = True,
    clock: Optional[Callable[[], date]] = None,
    enable_scheduler: Optional[bool] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured storage backend.
                    Set to False for in-memory storage (testing).
        clock: Source of "today"; defaults to date.today
        enable_scheduler: Override SchedulerSettings.enabled

    Returns:
        Wired AppComponents
    """
    backend = get_settings().app.storage_backend

    if not use_storage or backend == "memory":
        return _in_memory_components(clock=clock, enable_scheduler=enable_scheduler)

    try:
        sheets_client = GoogleSheetsClient()
        sheets_client.get_spreadsheet()
    except Exception as e:
        # Storage not configured - continue without it
        logger.warning("storage_not_configured", backend=backend, error=str(e))
        return _in_memory_components(clock=clock, enable_scheduler=enable_scheduler)

    return AppComponents(
        subscription_storage=GoogleSheetsSubscriptionStorage(sheets_client),
        expense_storage=GoogleSheetsExpenseStorage(sheets_client),
        audit_storage=GoogleSheetsAuditStorage(sheets_client),
        clock=clock,
        enable_scheduler=enable_scheduler,
    )
