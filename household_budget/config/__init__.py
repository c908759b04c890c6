"""Configuration package."""

from household_budget.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    SchedulerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "SchedulerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
