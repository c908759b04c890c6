"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Household members can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a household)
- No transactions and no unique index. Idempotency keys are checked
  before every append, and the billing engine holds a per-subscription
  lock so only one writer touches a subscription's postings at a time.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_budget.config import GoogleSheetsSettings, get_settings
from household_budget.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_budget.models.billing import BillingScope
from household_budget.models.expense import Expense, NewExpense
from household_budget.models.subscription import Subscription
from household_budget.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
)

logger = structlog.get_logger(__name__)


# Column mappings for Subscriptions sheet
SUBSCRIPTION_COLUMNS = [
    "id",
    "created_at",
    "description",
    "amount",
    "currency",
    "category",
    "frequency",
    "day_of_month",
    "active",
    "next_due_date",
    "user_id",
    "household_id",
]

# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "created_at",
    "description",
    "amount",
    "currency",
    "category",
    "date",
    "idempotency_key",
    "subscription_id",
    "user_id",
    "household_id",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_getter(row: list):
    """Column accessor that tolerates short rows."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _next_id(rows: list[list]) -> int:
    ids = [int(row[0]) for row in rows if row and row[0].isdigit()]
    return max(ids, default=0) + 1


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_subscriptions_sheet(self) -> gspread.Worksheet:
        """Get or create the Subscriptions worksheet."""
        return self._get_or_create_sheet(
            self._settings.subscriptions_sheet_name, SUBSCRIPTION_COLUMNS, 500
        )

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, 5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        # More rows for audit log
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


class GoogleSheetsSubscriptionStorage(SubscriptionStorageInterface):
    """
    Google Sheets implementation of subscription storage.

    One subscription per row. Every read goes to the sheet; nothing is cached.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _subscription_to_row(self, subscription: Subscription) -> list:
        """Convert a Subscription to a spreadsheet row."""
        return [
            str(subscription.id),
            subscription.created_at.isoformat(),
            subscription.description,
            str(subscription.amount),
            subscription.currency,
            subscription.category,
            subscription.frequency,
            str(subscription.day_of_month),
            str(subscription.active),
            subscription.next_due_date.isoformat() if subscription.next_due_date else "",
            str(subscription.user_id),
            str(subscription.household_id),
        ]

    def _row_to_subscription(self, row: list) -> Subscription:
        """Convert a spreadsheet row to a Subscription."""
        safe_get = _safe_getter(row)
        return Subscription(
            id=int(safe_get(0)),
            created_at=datetime.fromisoformat(safe_get(1)),
            description=safe_get(2),
            amount=Decimal(safe_get(3)),
            currency=safe_get(4),
            category=safe_get(5),
            frequency=safe_get(6),
            day_of_month=int(safe_get(7)),
            active=safe_get(8).lower() == "true",
            next_due_date=date.fromisoformat(safe_get(9)) if safe_get(9) else None,
            user_id=int(safe_get(10)),
            household_id=int(safe_get(11)),
        )

    def _read_rows(self) -> tuple[list[Subscription], list[list]]:
        """Loaded subscriptions, plus the raw rows that could not be loaded."""
        sheet = self._client.get_subscriptions_sheet()
        subscriptions = []
        malformed = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                subscriptions.append(self._row_to_subscription(row))
            except Exception as e:
                logger.warning("malformed_subscription_row", row_id=row[0], error=str(e))
                malformed.append(row)
        return subscriptions, malformed

    def _read_all(self) -> list[Subscription]:
        return self._read_rows()[0]

    def _find_row_index(self, sheet: gspread.Worksheet, subscription_id: int) -> int:
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == str(subscription_id):
                return idx
        raise NotFoundError(f"Subscription not found: {subscription_id}")

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        try:
            sheet = self._client.get_subscriptions_sheet()
            stored = subscription.model_copy(
                update={"id": _next_id(sheet.get_all_values()[1:])}
            )
            sheet.append_row(self._subscription_to_row(stored), value_input_option="RAW")
            return stored
        except Exception as e:
            raise StorageError(f"Failed to save subscription: {e}")

    async def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        try:
            sheet = self._client.get_subscriptions_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(subscription_id):
                    return self._row_to_subscription(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get subscription: {e}")

    async def update_subscription(self, subscription: Subscription) -> Subscription:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = self._find_row_index(sheet, subscription.id)
            for col_idx, value in enumerate(self._subscription_to_row(subscription), start=1):
                sheet.update_cell(idx, col_idx, value)
            return subscription
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update subscription: {e}")

    async def update_next_due_date(
        self,
        subscription_id: int,
        next_due_date: date,
    ) -> None:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = self._find_row_index(sheet, subscription_id)
            sheet.update_cell(
                idx,
                SUBSCRIPTION_COLUMNS.index("next_due_date") + 1,
                next_due_date.isoformat(),
            )
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to advance subscription: {e}")

    async def delete_subscription(self, subscription_id: int) -> bool:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = self._find_row_index(sheet, subscription_id)
            sheet.delete_rows(idx)
            return True
        except NotFoundError:
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete subscription: {e}")

    async def list_subscriptions(
        self,
        household_id: int,
        active_only: bool = False,
    ) -> list[Subscription]:
        try:
            subscriptions = [
                s for s in self._read_all()
                if s.household_id == household_id and (s.active or not active_only)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list subscriptions: {e}")

        subscriptions.sort(key=lambda s: (s.description.lower(), s.id))
        return subscriptions

    async def find_due(
        self,
        scope: BillingScope,
        as_of: date,
    ) -> list[Subscription]:
        try:
            return [
                s for s in self._read_all()
                if s.active
                and s.next_due_date is not None
                and s.next_due_date <= as_of
                and scope.includes(s.household_id)
            ]
        except Exception as e:
            raise StorageError(f"Failed to query due subscriptions: {e}")

    async def count_unreadable(self, scope: BillingScope) -> int:
        household_col = SUBSCRIPTION_COLUMNS.index("household_id")
        try:
            _, malformed = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to read subscriptions: {e}")

        count = 0
        for row in malformed:
            household = row[household_col] if len(row) > household_col else ""
            if scope.is_global or (household.isdigit() and scope.includes(int(household))):
                count += 1
        return count


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    The idempotency_key column is treated as a unique index:
    insert_expense refuses a key that is already present.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            str(expense.id),
            expense.created_at.isoformat(),
            expense.description,
            str(expense.amount),
            expense.currency,
            expense.category,
            expense.date.isoformat(),
            expense.idempotency_key or "",
            str(expense.subscription_id) if expense.subscription_id else "",
            str(expense.user_id),
            str(expense.household_id),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        safe_get = _safe_getter(row)
        return Expense(
            id=int(safe_get(0)),
            created_at=datetime.fromisoformat(safe_get(1)),
            description=safe_get(2),
            amount=Decimal(safe_get(3)),
            currency=safe_get(4),
            category=safe_get(5),
            date=date.fromisoformat(safe_get(6)),
            idempotency_key=safe_get(7) or None,
            subscription_id=int(safe_get(8)) if safe_get(8) else None,
            user_id=int(safe_get(9)),
            household_id=int(safe_get(10)),
        )

    async def expense_exists(self, idempotency_key: str) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            key_col = EXPENSE_COLUMNS.index("idempotency_key")
            return any(
                len(row) > key_col and row[key_col] == idempotency_key
                for row in sheet.get_all_values()[1:]
            )
        except Exception as e:
            raise StorageError(f"Failed to check idempotency key: {e}")

    async def insert_expense(self, expense: NewExpense) -> Expense:
        try:
            sheet = self._client.get_expenses_sheet()
            rows = sheet.get_all_values()[1:]
            key_col = EXPENSE_COLUMNS.index("idempotency_key")

            if expense.idempotency_key and any(
                len(row) > key_col and row[key_col] == expense.idempotency_key
                for row in rows
            ):
                raise DuplicateError(
                    f"Expense already exists for key: {expense.idempotency_key}"
                )

            stored = Expense(
                id=_next_id(rows),
                created_at=datetime.utcnow(),
                **expense.model_dump(),
            )
            sheet.append_row(self._expense_to_row(stored), value_input_option="RAW")
            return stored
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(expense_id):
                    return self._row_to_expense(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def list_expenses(
        self,
        household_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            expenses = []
            for row in sheet.get_all_values()[1:]:
                if not row or not row[0]:
                    continue
                try:
                    expense = self._row_to_expense(row)
                except Exception as e:
                    logger.warning("malformed_expense_row", row_id=row[0], error=str(e))
                    continue

                if expense.household_id != household_id:
                    continue
                if date_from and expense.date < date_from:
                    continue
                if date_to and expense.date > date_to:
                    continue

                expenses.append(expense)
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        # Sort by date descending (newest first)
        expenses.sort(key=lambda e: (e.date, e.id), reverse=True)
        return expenses


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self, predicate) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("malformed_audit_row", row_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(
                lambda row: len(row) > 6 and row[6] == str(correlation_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(
                lambda row: len(row) > 5 and row[4] == entity_type and row[5] == entity_id
            )
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(lambda row: True)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
