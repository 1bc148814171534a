"""Tests for settings, rules loading and logging setup."""

import json
import logging

import pytest
from pydantic import ValidationError

from incident_stats import config
from incident_stats.config import Settings, get_settings, load_rules, reload_settings
from incident_stats.errors import ConfigurationError, NormalizationError
from incident_stats.utils.log_setup import (
    build_logging_config,
    configure_logging,
    level_for_verbosity,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate settings from the developer's environment and .env file."""
    for name in (
        "INCIDENT_STATS_DAY_RANGE",
        "STATS_DAYS",
        "INCIDENT_STATS_TIMEZONE",
        "INCIDENT_STATS_RULES_PATH",
        "INCIDENT_STATS_MIN_INTERVAL_SECONDS",
        "INCIDENT_STATS_LOG_LEVEL",
        "INCIDENT_STATS_DATE_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_settings", None)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.day_range == 30
        assert settings.timezone == "UTC"
        assert settings.rules_path is None
        assert settings.min_interval_seconds == 2.0
        assert settings.log_level == "WARNING"
        assert settings.date_format is None

    def test_legacy_day_range_variable(self, monkeypatch):
        monkeypatch.setenv("STATS_DAYS", "14")
        assert Settings().day_range == 14

    def test_day_range_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("INCIDENT_STATS_DAY_RANGE", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_timezone(self, monkeypatch):
        monkeypatch.setenv("INCIDENT_STATS_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValidationError):
            Settings()

    def test_date_format(self, monkeypatch):
        monkeypatch.setenv("INCIDENT_STATS_DATE_FORMAT", "%d/%m/%Y %H:%M:%S")
        assert Settings().date_format == "%d/%m/%Y %H:%M:%S"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("INCIDENT_STATS_DAY_RANGE=7\n")
        assert Settings().day_range == 7

    def test_global_instance(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first
        monkeypatch.setenv("INCIDENT_STATS_DAY_RANGE", "3")
        assert reload_settings().day_range == 3
        assert get_settings().day_range == 3

    def test_default_rules(self):
        rules = Settings().get_rules()
        assert rules.default_region == "other"


class TestLoadRules:
    """Tests for classification rules files."""

    def test_load(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "regions": [{"name": "harbor", "stations": ["41"]}],
            "backfill_types": ["571", "572"],
        }))
        rules = load_rules(path)
        assert rules.regions[0].name == "harbor"
        assert rules.backfill_types == ["571", "572"]

    def test_rules_path_from_env(self, monkeypatch, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"default_region": "elsewhere"}))
        monkeypatch.setenv("INCIDENT_STATS_RULES_PATH", str(path))
        assert Settings().get_rules().default_region == "elsewhere"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_rules(tmp_path / "nope.json")

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"regions": [{"stations": ["41"]}]}))
        with pytest.raises(ConfigurationError, match="Invalid rules file"):
            load_rules(path)


class TestErrors:
    """Tests for error types."""

    def test_location_in_message(self):
        error = NormalizationError("Malformed timestamp 'x'", row=4, column="arrival_at")
        assert str(error) == "Malformed timestamp 'x' (row 4, column 'arrival_at')"
        assert error.row == 4

    def test_plain_message(self):
        assert str(NormalizationError("Unreadable CSV")) == "Unreadable CSV"


class TestLogging:
    """Tests for logging setup."""

    @pytest.mark.parametrize("verbosity,expected", [(0, "WARNING"), (1, "INFO"), (2, "DEBUG"), (5, "DEBUG")])
    def test_level_for_verbosity(self, verbosity, expected):
        assert level_for_verbosity(verbosity) == expected

    def test_default_level_used_without_flags(self):
        assert level_for_verbosity(0, "info") == "INFO"

    def test_config_uses_rich_handler(self):
        schema = build_logging_config("DEBUG")
        assert schema["handlers"]["console"]["class"] == "rich.logging.RichHandler"
        assert schema["loggers"]["incident_stats"]["level"] == "DEBUG"

    def test_configure_logging(self):
        assert configure_logging(1) == "INFO"
        assert logging.getLogger("incident_stats").level == logging.INFO
