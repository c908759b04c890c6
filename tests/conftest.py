"""
Shared fixtures for Household Budget tests.

Everything runs against in-memory storage and a fixed clock; no test
talks to Google Sheets or depends on the real date.
"""

from datetime import date
from decimal import Decimal

import pytest

from household_budget.audit import AuditLogger
from household_budget.config import AppSettings
from household_budget.models import Owner, Subscription
from household_budget.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemorySubscriptionStorage,
)


class FixedClock:
    """Callable clock whose date tests can move."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock():
    return FixedClock(date(2024, 3, 15))


@pytest.fixture
def owner():
    return Owner(user_id=1, household_id=10)


@pytest.fixture
def other_owner():
    return Owner(user_id=2, household_id=20)


@pytest.fixture
def app_settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def subscription_storage():
    return InMemorySubscriptionStorage()


@pytest.fixture
def expense_storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def subscription_factory():
    """Build unsaved Subscription records with sensible defaults."""
    def make(**overrides) -> Subscription:
        fields = {
            "description": "Netflix",
            "amount": Decimal("15.99"),
            "currency": "EUR",
            "category": "Subscriptions",
            "frequency": "MONTHLY",
            "day_of_month": 15,
            "active": True,
            "next_due_date": date(2024, 3, 15),
            "user_id": 1,
            "household_id": 10,
        }
        fields.update(overrides)
        return Subscription(**fields)
    return make
