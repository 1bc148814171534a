"""Data models for the Incident Statistics Engine.

All entities use Pydantic for validation and serialization.
Timestamps are timezone-aware and expressed in the evaluation timezone;
durations are seconds.
"""

from incident_stats.models.base import StatsModel, utc_now, to_zone
from incident_stats.models.record import RawUnitRecord, IncidentGroup, TIMESTAMP_FIELDS
from incident_stats.models.incident import IncidentType, TimelineMetrics
from incident_stats.models.rules import (
    BoundingBox,
    ClassificationRules,
    IncidentTypeRules,
    RegionRule,
)
from incident_stats.models.stats import (
    ApparatusStats,
    IncidentStats,
    PersonnelStats,
    RegionStats,
    StatsDocument,
    SummaryStats,
    UnitTimeStats,
    empty_type_counts,
)

__all__ = [
    # Base
    "StatsModel",
    "utc_now",
    "to_zone",
    # Records
    "RawUnitRecord",
    "IncidentGroup",
    "TIMESTAMP_FIELDS",
    # Incident
    "IncidentType",
    "TimelineMetrics",
    # Rules
    "BoundingBox",
    "ClassificationRules",
    "IncidentTypeRules",
    "RegionRule",
    # Stats
    "ApparatusStats",
    "IncidentStats",
    "PersonnelStats",
    "RegionStats",
    "StatsDocument",
    "SummaryStats",
    "UnitTimeStats",
    "empty_type_counts",
]
