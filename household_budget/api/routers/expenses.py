"""Expense API routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, status

from household_budget.api.dependencies import ComponentsDep, OwnerDep
from household_budget.models.expense import Expense, ExpenseCreate, ExpenseCreationResult

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("", response_model=list[Expense])
async def list_expenses(
    owner: OwnerDep,
    components: ComponentsDep,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    return await components.expense_service.list_expenses(owner, date_from, date_to)


@router.post("", response_model=ExpenseCreationResult, status_code=status.HTTP_201_CREATED)
async def create_expense(
    request: ExpenseCreate,
    owner: OwnerDep,
    components: ComponentsDep,
):
    """
    Record an expense.

    Recurring expenses also derive a subscription; if that fails the
    expense is still created and `auto_subscription_error` explains why.
    """
    return await components.expense_service.create_expense(request, owner)
