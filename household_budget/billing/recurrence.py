"""
Recurrence Calculator

Pure date arithmetic for subscription schedules. No I/O, no clock:
"today" is always passed in, so every rule is testable with fixed dates.

RULES:
- MONTHLY: one calendar month later, on min(day_of_month, month length)
- YEARLY:  one calendar year later, same month and day, clamped to the
           month length (a Feb 29 anchor falls on Feb 28 in common years)
- WEEKLY:  seven days later; day_of_month is ignored

Month clamping uses the subscription's day_of_month, not the previous due
date, so a day-31 subscription returns to the 31st after a short month.
"""

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Union

from household_budget.models.subscription import Frequency


class UnsupportedFrequencyError(ValueError):
    """Frequency value the calculator has no rule for."""

    def __init__(self, frequency):
        self.frequency = frequency
        super().__init__(f"Unsupported subscription frequency: {frequency!r}")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _as_frequency(frequency: Union[Frequency, str]) -> Frequency:
    if isinstance(frequency, Frequency):
        return frequency
    value = frequency.value if isinstance(frequency, Enum) else str(frequency)
    try:
        return Frequency(value.strip().upper())
    except ValueError:
        raise UnsupportedFrequencyError(frequency) from None


def _add_months(from_date: date, months: int, day: int) -> date:
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day, days_in_month(year, month)))


def next_due_date(
    frequency: Union[Frequency, str],
    day_of_month: int,
    from_date: date,
) -> date:
    """
    Next due date after `from_date`.

    Raises:
        UnsupportedFrequencyError: frequency has no recurrence rule
    """
    rule = _as_frequency(frequency)

    if rule is Frequency.MONTHLY:
        return _add_months(from_date, 1, day_of_month)
    if rule is Frequency.YEARLY:
        return _add_months(from_date, 12, from_date.day)
    if rule is Frequency.WEEKLY:
        return from_date + timedelta(days=7)

    raise UnsupportedFrequencyError(frequency)


def initial_due_date(
    frequency: Union[Frequency, str],
    day_of_month: int,
    today: date,
) -> date:
    """
    First due date for a subscription created or reactivated on `today`.

    The billing day in the current month if it is still ahead,
    otherwise the following occurrence. Never returns a past date.
    """
    rule = _as_frequency(frequency)
    day = min(day_of_month, days_in_month(today.year, today.month))
    candidate = today.replace(day=day)

    if candidate <= today:
        candidate = next_due_date(rule, day_of_month, candidate)

    return candidate


def idempotency_key(subscription_id: int, due_date: date) -> str:
    """
    Key identifying the posting for one subscription due date.

    Format is persisted and must not change: sub-<id>-<YYYY-MM-DD>
    """
    return f"sub-{subscription_id}-{due_date.isoformat()}"
