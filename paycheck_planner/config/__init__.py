"""Configuration package."""

from paycheck_planner.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    PlanningSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "PlanningSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
