"""
Audit Models for Household Budget

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every generated expense back to its subscription
2. Debugging information when a billing run partially fails
3. A history of schedule changes (activation, edits, deletion)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Subscription lifecycle
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    SUBSCRIPTION_DEACTIVATED = "subscription_deactivated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    AUTO_SUBSCRIPTION_FAILED = "auto_subscription_failed"

    # Expenses
    EXPENSE_CREATED = "expense_created"

    # Billing runs
    BILLING_RUN_STARTED = "billing_run_started"
    BILLING_RUN_COMPLETED = "billing_run_completed"
    EXPENSE_POSTED = "expense_posted"
    DUPLICATE_POSTING_SKIPPED = "duplicate_posting_skipped"
    POSTING_FAILED = "posting_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'subscription', 'expense', 'billing_run')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one billing run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_posted(7, 42, "sub-7-2024-03-15", correlation_id)
        event = AuditEventBuilder.subscription_deleted(7, household_id=3)
    """

    @staticmethod
    def subscription_created(
        subscription_id: int,
        description: str,
        frequency: str,
        next_due_date: Optional[date],
        household_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_CREATED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            description=f"Subscription created: {description} ({frequency})",
            details={
                "household_id": household_id,
                "frequency": frequency,
                "next_due_date": next_due_date.isoformat() if next_due_date else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def subscription_updated(
        subscription_id: int,
        schedule_recomputed: bool,
        next_due_date: Optional[date],
        household_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_UPDATED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            description="Subscription updated",
            details={
                "household_id": household_id,
                "schedule_recomputed": schedule_recomputed,
                "next_due_date": next_due_date.isoformat() if next_due_date else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def subscription_toggled(
        subscription_id: int,
        active: bool,
        next_due_date: Optional[date],
        household_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SUBSCRIPTION_ACTIVATED
                if active
                else AuditEventType.SUBSCRIPTION_DEACTIVATED
            ),
            entity_type="subscription",
            entity_id=str(subscription_id),
            description=f"Subscription {'activated' if active else 'deactivated'}",
            details={
                "household_id": household_id,
                "next_due_date": next_due_date.isoformat() if next_due_date else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def subscription_deleted(
        subscription_id: int,
        household_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_DELETED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            description="Subscription deleted",
            details={"household_id": household_id},
            is_user_action=True,
        )

    @staticmethod
    def auto_subscription_failed(
        expense_id: int,
        error_message: str,
        household_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_SUBSCRIPTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=str(expense_id),
            description="Could not derive a subscription from a recurring expense",
            error_message=error_message,
            details={"household_id": household_id},
            is_user_action=True,
        )

    @staticmethod
    def expense_created(
        expense_id: int,
        description: str,
        amount: str,
        currency: str,
        household_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=str(expense_id),
            description=f"Expense recorded: {description} - {amount} {currency}",
            details={
                "household_id": household_id,
                "amount": amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def billing_run_started(
        scope: str,
        as_of: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLING_RUN_STARTED,
            entity_type="billing_run",
            correlation_id=correlation_id,
            description=f"Billing run started for {scope}",
            details={"scope": scope, "as_of": as_of.isoformat()},
        )

    @staticmethod
    def billing_run_completed(
        summary: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        needs_attention = summary.get("failures") or summary.get("unreadable_records")
        severity = AuditSeverity.WARNING if needs_attention else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.BILLING_RUN_COMPLETED,
            severity=severity,
            entity_type="billing_run",
            correlation_id=correlation_id,
            description=(
                f"Billing run completed: {summary.get('created', 0)} posted, "
                f"{summary.get('failures', 0)} failed"
            ),
            details=summary,
        )

    @staticmethod
    def expense_posted(
        subscription_id: int,
        expense_id: int,
        idempotency_key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_POSTED,
            entity_type="expense",
            entity_id=str(expense_id),
            correlation_id=correlation_id,
            description=f"Expense posted for subscription {subscription_id}",
            details={
                "subscription_id": subscription_id,
                "idempotency_key": idempotency_key,
            },
        )

    @staticmethod
    def duplicate_posting_skipped(
        subscription_id: int,
        idempotency_key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_POSTING_SKIPPED,
            entity_type="subscription",
            entity_id=str(subscription_id),
            correlation_id=correlation_id,
            description=f"Due date already posted: {idempotency_key}",
            details={"idempotency_key": idempotency_key},
        )

    @staticmethod
    def posting_failed(
        subscription_id: int,
        due_date: Optional[date],
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POSTING_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="subscription",
            entity_id=str(subscription_id),
            correlation_id=correlation_id,
            description=f"Posting failed for subscription {subscription_id}",
            error_code=error_type,
            error_message=error_message,
            details={"due_date": due_date.isoformat() if due_date else None},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
