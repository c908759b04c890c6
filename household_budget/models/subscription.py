"""
Subscription Models

A subscription is a recurring charge (streaming service, gym, insurance)
that the billing engine turns into one expense per due date.

DESIGN DECISION: The stored record keeps `frequency` as the raw string that
was persisted. Request models validate against `Frequency`, but a record read
back from storage may still carry a value this version no longer knows.
Such a record must fail only its own billing step, not the whole query.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class Frequency(str, Enum):
    """
    Supported recurrence rules.

    WEEKLY is a legacy variant: still billed when found in storage,
    but only accepted on create/update when explicitly enabled in settings.
    """
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    WEEKLY = "WEEKLY"


class Owner(BaseModel):
    """
    Tenant context of a request.

    Authentication happens outside this service; callers pass who is
    acting and for which household.
    """
    model_config = ConfigDict(frozen=True)

    user_id: int = Field(..., ge=1)
    household_id: int = Field(..., ge=1)


DESCRIPTION_MAX_LENGTH = 255


def normalize_currency(v: str) -> str:
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError(f"Currency must be a 3-letter code, got: {v!r}")
    return v


class SubscriptionFields(BaseModel):
    """Fields shared by subscription requests and records."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=DESCRIPTION_MAX_LENGTH,
        description="What is being paid for"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Amount charged per period"
    )
    currency: str = Field(
        ...,
        description="ISO 4217 currency code"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Expense category for generated postings"
    )
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Billing day; clamped to the month length"
    )

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)


class SubscriptionCreate(SubscriptionFields):
    """Request to create a subscription."""

    frequency: Frequency = Field(
        default=Frequency.MONTHLY,
        description="Recurrence rule"
    )
    active: Optional[bool] = Field(
        default=None,
        description="Defaults to active when omitted"
    )


class SubscriptionUpdate(SubscriptionFields):
    """
    Request to replace a subscription's fields.

    `active` is optional: when omitted the current state is kept.
    """

    frequency: Frequency
    active: Optional[bool] = None


class Subscription(SubscriptionFields):
    """
    A stored subscription.

    Invariant: `next_due_date` is set whenever `active` is true.
    """

    id: Optional[int] = Field(
        default=None,
        ge=1,
        description="Store-assigned identifier; None until saved"
    )
    frequency: str = Field(
        ...,
        description="Recurrence rule as persisted (see Frequency)"
    )
    active: bool = True
    next_due_date: Optional[date] = Field(
        default=None,
        description="Next date a posting is due"
    )
    user_id: int
    household_id: int
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the subscription was created"
    )

    @field_validator('frequency', mode='before')
    @classmethod
    def normalize_frequency(cls, v) -> str:
        if isinstance(v, Enum):
            v = v.value
        return str(v).strip().upper()

    @model_validator(mode='after')
    def validate_due_date(self) -> 'Subscription':
        """An active subscription must know when it is next due."""
        if self.active and self.next_due_date is None:
            raise ValueError("Active subscription requires a next due date")
        return self

    @property
    def owner(self) -> Owner:
        return Owner(user_id=self.user_id, household_id=self.household_id)


class SubscriptionPage(BaseModel):
    """One page of a household's subscriptions, ordered by description."""

    items: list[Subscription]
    total: int = Field(..., ge=0, description="Subscriptions across all pages")
    page: int = Field(..., ge=0)
    size: int = Field(..., ge=1)
