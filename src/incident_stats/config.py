"""Runtime configuration for the Incident Statistics Engine."""

from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from incident_stats.errors import ConfigurationError
from incident_stats.models import ClassificationRules


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Detailed stats window
    day_range: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices("INCIDENT_STATS_DAY_RANGE", "STATS_DAYS"),
    )

    # Wall-clock zone of the record source; used for day buckets and night hours
    timezone: str = Field(
        default="UTC",
        validation_alias="INCIDENT_STATS_TIMEZONE"
    )

    # Classification rules file (JSON); built-in defaults when unset
    rules_path: Path | None = Field(
        default=None,
        validation_alias="INCIDENT_STATS_RULES_PATH"
    )

    # Bad-data threshold for timing deltas
    min_interval_seconds: float = Field(
        default=2.0,
        ge=0,
        validation_alias="INCIDENT_STATS_MIN_INTERVAL_SECONDS"
    )

    # strptime format of export dates; inferred per export when unset
    date_format: str | None = Field(
        default=None,
        validation_alias="INCIDENT_STATS_DATE_FORMAT"
    )

    log_level: str = Field(
        default="WARNING",
        validation_alias="INCIDENT_STATS_LOG_LEVEL"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    def get_zone(self) -> tzinfo:
        """Get the evaluation timezone."""
        return ZoneInfo(self.timezone)

    def get_rules(self) -> ClassificationRules:
        """Load the classification rules, or the defaults if no file is set."""
        if self.rules_path is None:
            return ClassificationRules()
        return load_rules(self.rules_path)


def load_rules(path: str | Path) -> ClassificationRules:
    """Load classification rules from a JSON file.

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Rules file not found: {path}")
    try:
        return ClassificationRules.load_from_file(path)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rules file {path}: {e}") from e


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings
