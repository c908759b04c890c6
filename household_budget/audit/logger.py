"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability from each generated expense back to its subscription
2. Debugging capability for partially failed billing runs
3. A household-visible history of schedule changes

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from household_budget.models.audit import AuditEvent, AuditEventBuilder
from household_budget.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and household visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_subscription_created(
        self,
        subscription_id: int,
        description: str,
        frequency: str,
        next_due_date: Optional[date],
        household_id: int,
    ) -> None:
        event = AuditEventBuilder.subscription_created(
            subscription_id=subscription_id,
            description=description,
            frequency=frequency,
            next_due_date=next_due_date,
            household_id=household_id,
        )
        await self.log(event)

    async def log_subscription_updated(
        self,
        subscription_id: int,
        schedule_recomputed: bool,
        next_due_date: Optional[date],
        household_id: int,
    ) -> None:
        event = AuditEventBuilder.subscription_updated(
            subscription_id=subscription_id,
            schedule_recomputed=schedule_recomputed,
            next_due_date=next_due_date,
            household_id=household_id,
        )
        await self.log(event)

    async def log_subscription_toggled(
        self,
        subscription_id: int,
        active: bool,
        next_due_date: Optional[date],
        household_id: int,
    ) -> None:
        event = AuditEventBuilder.subscription_toggled(
            subscription_id=subscription_id,
            active=active,
            next_due_date=next_due_date,
            household_id=household_id,
        )
        await self.log(event)

    async def log_subscription_deleted(
        self,
        subscription_id: int,
        household_id: int,
    ) -> None:
        event = AuditEventBuilder.subscription_deleted(
            subscription_id=subscription_id,
            household_id=household_id,
        )
        await self.log(event)

    async def log_expense_created(
        self,
        expense_id: int,
        description: str,
        amount: str,
        currency: str,
        household_id: int,
    ) -> None:
        event = AuditEventBuilder.expense_created(
            expense_id=expense_id,
            description=description,
            amount=amount,
            currency=currency,
            household_id=household_id,
        )
        await self.log(event)

    async def log_auto_subscription_failed(
        self,
        expense_id: int,
        error_message: str,
        household_id: int,
    ) -> None:
        event = AuditEventBuilder.auto_subscription_failed(
            expense_id=expense_id,
            error_message=error_message,
            household_id=household_id,
        )
        await self.log(event)

    async def log_billing_run_started(
        self,
        scope: str,
        as_of: date,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.billing_run_started(
            scope=scope,
            as_of=as_of,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_billing_run_completed(
        self,
        summary: dict,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.billing_run_completed(
            summary=summary,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_posted(
        self,
        subscription_id: int,
        expense_id: int,
        idempotency_key: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.expense_posted(
            subscription_id=subscription_id,
            expense_id=expense_id,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_duplicate_skipped(
        self,
        subscription_id: int,
        idempotency_key: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.duplicate_posting_skipped(
            subscription_id=subscription_id,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_posting_failed(
        self,
        subscription_id: int,
        due_date: Optional[date],
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.posting_failed(
            subscription_id=subscription_id,
            due_date=due_date,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)
