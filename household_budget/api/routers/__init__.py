"""API routers for Household Budget.

Each router handles a specific domain of the API.
"""

from household_budget.api.routers.expenses import router as expenses_router
from household_budget.api.routers.subscriptions import router as subscriptions_router
from household_budget.api.routers.system import router as system_router

__all__ = [
    "expenses_router",
    "subscriptions_router",
    "system_router",
]
