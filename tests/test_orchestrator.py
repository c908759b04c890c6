"""
Tests for component wiring.
"""

from household_budget.billing import BillingScheduler
from household_budget.orchestrator import create_app_components
from household_budget.services.storage import (
    InMemoryExpenseStorage,
    InMemorySubscriptionStorage,
)


class TestCreateAppComponents:

    def test_in_memory_without_scheduler(self):
        components = create_app_components(use_storage=False, enable_scheduler=False)

        assert isinstance(components.subscription_storage, InMemorySubscriptionStorage)
        assert isinstance(components.expense_storage, InMemoryExpenseStorage)
        assert components.scheduler is None

    def test_scheduler_shares_the_processor(self):
        components = create_app_components(use_storage=False, enable_scheduler=True)

        assert isinstance(components.scheduler, BillingScheduler)
        assert components.scheduler._processor is components.processor

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        components = create_app_components(enable_scheduler=False)

        assert isinstance(components.subscription_storage, InMemorySubscriptionStorage)
