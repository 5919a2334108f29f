"""
Configuration Management for Paycheck Planner

Every setting is read from environment variables (or .env) through
pydantic-settings, grouped by concern: planning defaults, the Google
Sheets backend, and the application itself.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PlanningSettings(BaseSettings):
    """Planning window and projection defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PLANNER_",
        extra="ignore"
    )

    default_lookahead_months: int = Field(
        default=4,
        ge=1,
        le=24,
        description="Months of paychecks projected from the target month"
    )
    default_planning_window_months: int = Field(
        default=0,
        ge=0,
        le=24,
        description="Months beyond the target month planned by default"
    )
    max_planning_window_months: int = Field(
        default=24,
        ge=0,
        le=120,
        description="Largest planning window a request may ask for"
    )


class GoogleSheetsSettings(BaseSettings):
    """Worksheet backend: service account credentials and sheet names."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the planning records"
    )

    # One worksheet per record type
    income_sources_sheet_name: str = Field(default="IncomeSources")
    debts_sheet_name: str = Field(default="Debts")
    monthly_debt_instances_sheet_name: str = Field(default="MonthlyDebtInstances")
    debt_allocations_sheet_name: str = Field(default="DebtAllocations")
    dismissed_warnings_sheet_name: str = Field(default="DismissedWarnings")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet receiving audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing credentials file only warns; it may be mounted after startup."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "The Google Sheets backend cannot connect without it."
            )
        return v


class AppSettings(BaseSettings):
    """
    Application-wide settings: environment, logging and backend choice.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level emitted by the structured logger"
    )

    # Backend selection
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Persistence backend for planning records"
    )


class Settings(BaseSettings):
    """
    Root settings object.

    Sub-settings are built on access, so a missing Google Sheets
    configuration only fails when that backend is actually used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def planning(self) -> PlanningSettings:
        return PlanningSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings, loaded once.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Startup check of every settings group.

    Maps each group name to whether it loaded, plus an `<name>_error`
    entry holding the failure message.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.planning
        results["planning"] = True
    except Exception as e:
        results["planning"] = False
        results["planning_error"] = str(e)

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        return results

    if app.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
