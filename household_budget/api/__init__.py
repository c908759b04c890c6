"""REST API for Household Budget."""

from household_budget.api.app import create_app

__all__ = ["create_app"]
