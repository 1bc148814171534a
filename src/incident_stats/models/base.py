"""Base model class with common functionality for all incident stats models."""

from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict


T = TypeVar("T", bound="StatsModel")


class StatsModel(BaseModel):
    """Base model class with JSON serialization support.

    All models inherit from this class to get consistent
    serialization/deserialization behavior. Field aliases are used
    when dumping so output keys match the published stats file.
    """

    model_config = ConfigDict(
        # Use enum values in serialization
        use_enum_values=True,
        # Validate field assignments
        validate_assignment=True,
        populate_by_name=True,
    )

    def to_json(self, indent: int = 2) -> str:
        """Serialize model to JSON string.

        Args:
            indent: Indentation level for pretty printing (default: 2)

        Returns:
            JSON string representation of the model
        """
        return self.model_dump_json(indent=indent, by_alias=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize model to a JSON-compatible dictionary."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls: type[T], json_str: str) -> T:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)

    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        """Deserialize model from dictionary."""
        return cls.model_validate(data)

    @classmethod
    def load_from_file(cls: type[T], file_path: str | Path) -> T:
        """Load model from a JSON file.

        Args:
            file_path: Path to the JSON file

        Returns:
            Model instance
        """
        path = Path(file_path)
        return cls.from_json(path.read_text())

    def save_to_file(self, file_path: str | Path, indent: int = 2) -> None:
        """Save model to a JSON file.

        The document is written to a sibling temp file first and then moved
        into place, so readers never see a half-written file.

        Args:
            file_path: Path to save the JSON file
            indent: Indentation level for pretty printing (default: 2)
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_text(self.to_json(indent=indent) + "\n")
        tmp_path.replace(path)


def utc_now() -> datetime:
    """Get current time in UTC with timezone awareness."""
    return datetime.now(timezone.utc)


def to_zone(dt: datetime | None, zone: tzinfo) -> datetime | None:
    """Express a datetime in the evaluation timezone.

    Naive datetimes are taken as wall-clock time in ``zone`` and are tagged
    without shifting; aware datetimes are converted.

    Args:
        dt: Datetime to tag/convert
        zone: Evaluation timezone

    Returns:
        Aware datetime in ``zone``, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=zone)
    return dt.astimezone(zone)
