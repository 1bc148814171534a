"""Shared fixtures for building records and incidents in memory."""

from datetime import datetime, timezone

import pytest

from incident_stats.models import IncidentGroup, RawUnitRecord


@pytest.fixture
def at():
    """Aware UTC datetime on 2024-03-14 (or another day) at the given time."""

    def _at(hour: int, minute: int = 0, second: int = 0, day: int = 14) -> datetime:
        return datetime(2024, 3, day, hour, minute, second, tzinfo=timezone.utc)

    return _at


@pytest.fixture
def make_record():
    """Factory for RawUnitRecords with sensible incident-level defaults."""

    def _make(incident_id: str = "24-0001", **fields) -> RawUnitRecord:
        values = {
            "station_id": "Station 31",
            "incident_type_code": "311",
            "apparatus_name": "E31",
        }
        values.update(fields)
        return RawUnitRecord(incident_id=incident_id, **values)

    return _make


@pytest.fixture
def make_group():
    """Wrap records of one incident into an IncidentGroup."""

    def _make(*records: RawUnitRecord) -> IncidentGroup:
        return IncidentGroup(incident_id=records[0].incident_id, records=tuple(records))

    return _make
