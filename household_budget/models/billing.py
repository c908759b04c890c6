"""
Billing Run Models

Describe what a billing run should cover (scope) and what it did (report).
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from household_budget.models.expense import Expense


class BillingScope(BaseModel):
    """
    Which households a billing run covers.

    The daily job runs across all households; a user's "process now"
    request is limited to their own household.
    """
    model_config = ConfigDict(frozen=True)

    household_id: Optional[int] = Field(
        default=None,
        description="None means every household"
    )

    @classmethod
    def all_households(cls) -> "BillingScope":
        return cls()

    @classmethod
    def household(cls, household_id: int) -> "BillingScope":
        return cls(household_id=household_id)

    @property
    def is_global(self) -> bool:
        return self.household_id is None

    def includes(self, household_id: int) -> bool:
        return self.is_global or self.household_id == household_id

    def describe(self) -> str:
        if self.is_global:
            return "all households"
        return f"household {self.household_id}"


class ProcessingFailure(BaseModel):
    """One subscription that could not be processed in a run."""

    subscription_id: int
    due_date: Optional[date] = None
    error_type: str
    message: str


class ProcessingReport(BaseModel):
    """
    Outcome of one billing run.

    `created` holds only postings inserted by this run. Due dates that
    were already posted are counted in `skipped_duplicates`.
    """

    correlation_id: UUID = Field(default_factory=uuid4)
    scope: BillingScope
    as_of: date
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    subscriptions_seen: int = 0
    created: list[Expense] = Field(default_factory=list)
    skipped_duplicates: int = 0
    failures: list[ProcessingFailure] = Field(default_factory=list)
    unreadable_records: int = Field(
        default=0,
        description="Stored records in scope that could not be loaded, so were not billed"
    )

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def summary(self) -> dict:
        """Compact form for logs and audit details."""
        return {
            "scope": self.scope.describe(),
            "as_of": self.as_of.isoformat(),
            "subscriptions_seen": self.subscriptions_seen,
            "created": self.created_count,
            "skipped_duplicates": self.skipped_duplicates,
            "failures": self.failure_count,
            "unreadable_records": self.unreadable_records,
        }
