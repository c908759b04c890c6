"""Recurring-subscription billing engine."""

from household_budget.billing.processor import BillingProcessor
from household_budget.billing.recurrence import (
    UnsupportedFrequencyError,
    days_in_month,
    idempotency_key,
    initial_due_date,
    next_due_date,
)
from household_budget.billing.scheduler import DAILY_BILLING_JOB_ID, BillingScheduler

__all__ = [
    "BillingProcessor",
    "BillingScheduler",
    "DAILY_BILLING_JOB_ID",
    "UnsupportedFrequencyError",
    "days_in_month",
    "idempotency_key",
    "initial_due_date",
    "next_due_date",
]
