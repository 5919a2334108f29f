"""
Tests for configuration loading
"""

import pytest

from paycheck_planner.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    PlanningSettings,
    get_settings,
    validate_all_settings,
)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_planning_defaults(self, monkeypatch):
        """Test planning defaults with no environment overrides."""
        for name in (
            "PLANNER_DEFAULT_LOOKAHEAD_MONTHS",
            "PLANNER_DEFAULT_PLANNING_WINDOW_MONTHS",
            "PLANNER_MAX_PLANNING_WINDOW_MONTHS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = PlanningSettings()
        assert settings.default_lookahead_months == 4
        assert settings.default_planning_window_months == 0
        assert settings.max_planning_window_months == 24

    def test_planning_env_override(self, monkeypatch):
        """Test the PLANNER_ prefix."""
        monkeypatch.setenv("PLANNER_DEFAULT_LOOKAHEAD_MONTHS", "6")
        assert PlanningSettings().default_lookahead_months == 6

    def test_planning_rejects_zero_lookahead(self, monkeypatch):
        monkeypatch.setenv("PLANNER_DEFAULT_LOOKAHEAD_MONTHS", "0")
        with pytest.raises(ValueError):
            PlanningSettings()

    def test_app_rejects_unknown_backend(self, monkeypatch):
        """Test backend selection validation."""
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            AppSettings()

    def test_google_sheets_warns_on_missing_credentials(self, tmp_path):
        """Test that a missing credentials file warns instead of failing."""
        missing = tmp_path / "missing.json"
        with pytest.warns(UserWarning, match="credentials file not found"):
            settings = GoogleSheetsSettings(
                credentials_path=str(missing),
                spreadsheet_id="sheet-123",
            )
        assert settings.monthly_debt_instances_sheet_name == "MonthlyDebtInstances"

    def test_validate_all_settings_memory_backend(self, monkeypatch):
        """Test that Google Sheets is not checked for the memory backend."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        get_settings.cache_clear()
        try:
            results = validate_all_settings()
        finally:
            get_settings.cache_clear()

        assert results["planning"] is True
        assert results["app"] is True
        assert "google_sheets" not in results


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
