"""Stats document entities - the published aggregate and its nested summaries.

Key names match the stats.json file the website already renders.
"""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import Field

from incident_stats.models.base import StatsModel, utc_now
from incident_stats.models.incident import IncidentType


Number = Union[int, float]


def empty_type_counts() -> dict[str, int]:
    """Zero count for every known incident-type bucket."""
    return {t.value: 0 for t in IncidentType}


class SummaryStats(StatsModel):
    """Distribution summary of a collection of values."""

    sum: Number = 0
    mean: Number = 0
    q1: Number = 0
    median: Number = 0
    q3: Number = 0
    min: Number = 0
    max: Number = 0


class UnitTimeStats(StatsModel):
    """Per-unit response timers, in seconds."""

    first_unit_reaction: SummaryStats = Field(default_factory=SummaryStats)
    travel: SummaryStats = Field(default_factory=SummaryStats)
    to_scene: SummaryStats = Field(default_factory=SummaryStats)
    on_scene: SummaryStats = Field(default_factory=SummaryStats)


class PersonnelStats(StatsModel):
    time_on_incidents: SummaryStats = Field(default_factory=SummaryStats)
    num_per_incidents: SummaryStats = Field(default_factory=SummaryStats)
    num_unique_responders: int = 0


class ApparatusStats(StatsModel):
    num_per_incident: SummaryStats = Field(default_factory=SummaryStats)
    num_unique_used: int = 0


class RegionStats(StatsModel):
    incident_types: dict[str, int] = Field(default_factory=empty_type_counts)
    num_incidents: int = 0
    unit_travel_time: SummaryStats = Field(default_factory=SummaryStats)


class IncidentStats(StatsModel):
    types: dict[str, int] = Field(default_factory=empty_type_counts)
    num_incidents_last_365_days: int = 0
    num_incidents: int = 0
    num_daytime_incidents: int = 0
    num_nighttime_incidents: int = 0
    incident_times: SummaryStats = Field(default_factory=SummaryStats)
    num_overlapping_incidents: int = 0
    num_per_day: SummaryStats = Field(default_factory=SummaryStats)
    daily_counts: dict[str, int] = Field(
        default_factory=dict, description="ISO date -> incidents dispatched that day"
    )


class StatsDocument(StatsModel):
    """The complete statistics file for one reporting run.

    Regenerated wholesale on every run; nothing is carried over from a
    previous document.
    """

    updated_at: datetime = Field(default_factory=utc_now)
    date_range_from: Optional[date] = None
    date_range_to: Optional[date] = None
    date_range_all_from: Optional[datetime] = None
    date_range_all_to: Optional[datetime] = None
    parse_warnings: int = 0
    comment: str = Field(
        "auto generated; do not manually modify", alias="_comment"
    )
    time_description: str = Field("all times are in seconds", alias="_time_dsc")

    unit_time_stats: UnitTimeStats = Field(default_factory=UnitTimeStats)
    personnel_stats: PersonnelStats = Field(default_factory=PersonnelStats)
    region_stats: dict[str, RegionStats] = Field(default_factory=dict)
    incident_stats: IncidentStats = Field(default_factory=IncidentStats)
    apparatus_stats: ApparatusStats = Field(default_factory=ApparatusStats)
