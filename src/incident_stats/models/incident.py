"""Per-incident timeline metrics produced by the reconciler."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, model_validator

from incident_stats.models.base import StatsModel


class IncidentType(str, Enum):
    """Incident-type buckets published in the stats document."""
    MEDICAL_RESCUE = "medical_rescue"
    FIRE = "fire"
    DOWNGRADED = "downgraded"
    CANCELLED = "cancelled"
    OTHER = "other"


class TimelineMetrics(StatsModel):
    """Timing and workload values derived from one incident group.

    All durations are in seconds. Per-unit lists hold one entry per
    deduplicated unit row and may contain None where a value was missing
    or rejected as bad data.
    """

    model_config = ConfigDict(frozen=True)

    incident_id: str
    dispatched_at: Optional[datetime] = None
    region: str = "other"
    incident_type: IncidentType = IncidentType.OTHER

    reaction_time_seconds: Optional[float] = None
    travel_times: list[Optional[float]] = Field(default_factory=list)
    to_scene_times: list[Optional[float]] = Field(default_factory=list)
    on_scene_times: list[Optional[float]] = Field(default_factory=list)
    incident_time_seconds: Optional[float] = None

    personnel_ids: list[str] = Field(default_factory=list, description="Unique responders")
    personnel_times: list[Optional[float]] = Field(
        default_factory=list, description="One span per entry of personnel_ids"
    )
    apparatus_used: list[str] = Field(default_factory=list, description="Unique non-POV units")

    is_overlapping: bool = False
    is_nighttime: bool = False
    is_malformed: bool = False
    diagnostics: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_personnel(self) -> "TimelineMetrics":
        """Each responder contributes exactly one time entry."""
        if len(self.personnel_ids) != len(self.personnel_times):
            raise ValueError("personnel_ids and personnel_times must be the same length")
        return self

    @property
    def personnel_total_seconds(self) -> float:
        """Sum of every responder's time on this incident."""
        return sum(t for t in self.personnel_times if t is not None)
