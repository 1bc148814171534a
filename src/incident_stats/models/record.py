"""Unit record entities - normalized export rows and their incident grouping."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from incident_stats.models.base import StatsModel


TIMESTAMP_FIELDS = (
    "alarm_at",
    "dispatched_at",
    "en_route_at",
    "arrival_at",
    "clear_at",
    "last_unit_cleared_at",
)


class RawUnitRecord(StatsModel):
    """One responding unit (and responder) on one incident.

    An incident produces many records; incident-level columns such as
    station, type code and ``last_unit_cleared_at`` repeat on every row.
    Timestamps are aware datetimes in the evaluation timezone, or None when
    the step was never reached or never recorded.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    incident_id: str = Field(..., min_length=1, description="Incident number, shared by all unit rows")
    station_id: Optional[str] = Field(None, description="Station the incident was assigned to")
    incident_type_code: Optional[str] = Field(None, description="Numeric-prefixed incident type code")
    personnel_id: Optional[str] = Field(None, description="Responder login/user id")
    apparatus_name: Optional[str] = Field(None, description="Unit name, e.g. E31 or POV")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    alarm_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    en_route_at: Optional[datetime] = None
    arrival_at: Optional[datetime] = None
    clear_at: Optional[datetime] = None
    last_unit_cleared_at: Optional[datetime] = None

    @field_validator("incident_id")
    @classmethod
    def strip_incident_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("incident_id must not be blank")
        return v

    @field_validator("station_id", "incident_type_code", "personnel_id", "apparatus_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def unit_signature(self) -> tuple:
        """Every field except the responder, for spotting double-logged unit rows."""
        return tuple(
            value for key, value in self.model_dump().items() if key != "personnel_id"
        )


class IncidentGroup(StatsModel):
    """All unit records of one incident, in dispatch order."""

    model_config = ConfigDict(frozen=True)

    incident_id: str
    records: tuple[RawUnitRecord, ...] = Field(..., min_length=1)

    @property
    def base_record(self) -> RawUnitRecord:
        """The first dispatched row; its incident-level columns represent the group."""
        return self.records[0]

    @property
    def dispatched_at(self) -> Optional[datetime]:
        """Incident dispatch time, taken from the first row that has one."""
        if self.base_record.dispatched_at is not None:
            return self.base_record.dispatched_at
        for record in self.records:
            if record.dispatched_at is not None:
                return record.dispatched_at
        return None

    @property
    def last_unit_cleared_at(self) -> Optional[datetime]:
        return self.base_record.last_unit_cleared_at

    @property
    def is_malformed(self) -> bool:
        """True when no row carries a dispatch time."""
        return all(record.dispatched_at is None for record in self.records)
