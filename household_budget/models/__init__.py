"""
Data Models Package

This package contains all Pydantic models used in the Household Budget system.
All data flowing through the system must conform to these schemas.
"""

from household_budget.models.subscription import (
    Frequency,
    Owner,
    Subscription,
    SubscriptionCreate,
    SubscriptionPage,
    SubscriptionUpdate,
)
from household_budget.models.expense import (
    Expense,
    ExpenseCreate,
    ExpenseCreationResult,
    NewExpense,
)
from household_budget.models.billing import (
    BillingScope,
    ProcessingFailure,
    ProcessingReport,
)
from household_budget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Subscription models
    "Frequency",
    "Owner",
    "Subscription",
    "SubscriptionCreate",
    "SubscriptionPage",
    "SubscriptionUpdate",
    # Expense models
    "Expense",
    "ExpenseCreate",
    "ExpenseCreationResult",
    "NewExpense",
    # Billing models
    "BillingScope",
    "ProcessingFailure",
    "ProcessingReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
