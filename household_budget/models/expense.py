"""
Expense Models

Expenses come from two places:
1. Manual entry by a household member (no idempotency key)
2. The billing engine posting a subscription due date (idempotency key set)

CRITICAL: At most one expense may exist per idempotency key, for all time.
Storage backends enforce this; the billing engine relies on it.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from household_budget.models.subscription import (
    DESCRIPTION_MAX_LENGTH,
    Frequency,
    Subscription,
    normalize_currency,
)


class ExpenseFields(BaseModel):
    """Fields shared by expense requests and records."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=DESCRIPTION_MAX_LENGTH,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
    )
    currency: str
    category: str = Field(
        default="Other",
        min_length=1,
        max_length=50,
    )
    date: date

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)


class ExpenseCreate(ExpenseFields):
    """
    Request to record a manual expense.

    Tagging the expense with a frequency (or filing it under the
    subscription category) also derives a subscription from it.
    """

    frequency: Optional[Frequency] = Field(
        default=None,
        description="Recurrence of the expense, if it repeats"
    )
    day_of_month: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Billing day for the derived subscription"
    )


class Expense(ExpenseFields):
    """A stored expense."""

    id: int = Field(..., ge=1)
    idempotency_key: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Set only for subscription postings; unique"
    )
    subscription_id: Optional[int] = Field(
        default=None,
        description="Subscription this posting was generated from"
    )
    user_id: int
    household_id: int
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_generated(self) -> bool:
        return self.idempotency_key is not None


class ExpenseCreationResult(BaseModel):
    """
    Outcome of recording a manual expense.

    Deriving a subscription is a side effect: if it fails the expense is
    still kept, and the failure is reported here instead of raised.
    """

    expense: Expense
    subscription: Optional[Subscription] = None
    auto_subscription_error: Optional[str] = None

    @property
    def auto_subscription_failed(self) -> bool:
        return self.auto_subscription_error is not None


class NewExpense(ExpenseFields):
    """
    An expense about to be inserted.

    The store assigns `id` and `created_at` on insert.
    """

    idempotency_key: Optional[str] = Field(default=None, max_length=64)
    subscription_id: Optional[int] = None
    user_id: int
    household_id: int

    @classmethod
    def posting_for(
        cls,
        subscription: Subscription,
        due_date: date,
        idempotency_key: str,
        suffix: str,
    ) -> "NewExpense":
        """
        Build the posting that satisfies one subscription due date.

        The description is shortened so that it still fits once the
        suffix is appended.
        """
        room = max(DESCRIPTION_MAX_LENGTH - len(suffix), 1)
        return cls(
            description=f"{subscription.description[:room].rstrip()}{suffix}",
            amount=subscription.amount,
            currency=subscription.currency,
            category=subscription.category,
            date=due_date,
            idempotency_key=idempotency_key,
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            household_id=subscription.household_id,
        )
