"""Services package."""

from household_budget.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsSubscriptionStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemorySubscriptionStorage,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
)

__all__ = [
    # Storage interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "SubscriptionStorageInterface",
    # Storage exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Storage implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsSubscriptionStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemorySubscriptionStorage",
]
