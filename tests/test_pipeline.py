"""Tests for the StatsPipeline orchestrator."""

import json
from datetime import date, datetime, timezone

import pytest

from incident_stats.config import Settings
from incident_stats.models import ClassificationRules, RegionRule
from incident_stats.services.pipeline import (
    DefaultProgressCallbacks,
    ProcessingOptions,
    StatsPipeline,
)


NOW = datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)

CSV_HEADER = (
    "Incident Number,Station,Incident Type Code,User Login ID,Apparatus Name,"
    "Alarm Date,Dispatched Date,En Route Date,Arrival Date,Clear Date,Last Unit Cleared Date"
)

# Incident numbers deliberately out of dispatch order; 24-0002 is a standby,
# which buckets as fire.
CSV_ROWS = [
    "24-0003,Station 34,111,P3,E34,2024-03-14 10:09:00,2024-03-14 10:10:00,"
    "2024-03-14 10:11:00,2024-03-14 10:20:00,2024-03-14 10:40:00,2024-03-14 10:40:00",
    "24-0001,Station 31,311,P1,E31,2024-03-14 09:59:00,2024-03-14 10:00:00,"
    "2024-03-14 10:02:00,2024-03-14 10:05:00,2024-03-14 10:30:00,2024-03-14 10:30:00",
    "24-0001,Station 31,311,P2,E31,2024-03-14 09:59:00,2024-03-14 10:00:00,"
    "2024-03-14 10:02:00,2024-03-14 10:05:00,2024-03-14 10:30:00,2024-03-14 10:30:00",
    "24-0002,Station 32,571,P4,E32,2024-03-13 19:59:00,2024-03-13 20:00:00,"
    ",,2024-03-13 23:00:00,2024-03-13 23:00:00",
]


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "report.csv"
    path.write_text("\n".join([CSV_HEADER, *CSV_ROWS]) + "\n")
    return path


@pytest.fixture
def pipeline():
    return StatsPipeline()


class RecordingCallbacks(DefaultProgressCallbacks):
    def __init__(self):
        self.events = []

    def on_stage_start(self, stage_name):
        self.events.append(("start", stage_name))

    def on_stage_complete(self, stage_name, duration):
        self.events.append(("complete", stage_name))

    def on_error(self, stage_name, error):
        self.events.append(("error", stage_name))


class TestStatsPipeline:
    """Tests for complete pipeline runs."""

    def test_csv_run(self, pipeline, csv_path):
        result = pipeline.process(csv_path, "csv", ProcessingOptions(now=NOW))

        assert result.success
        assert result.errors == []
        assert result.stages_completed == StatsPipeline.STAGES
        assert result.metrics["record_count"] == 4
        assert result.metrics["incident_count"] == 3

        stats = result.document.incident_stats
        assert stats.num_incidents == 3
        assert stats.num_overlapping_incidents == 2
        assert stats.num_nighttime_incidents == 1
        assert stats.types == {
            "medical_rescue": 1, "fire": 2, "downgraded": 0, "cancelled": 0, "other": 0,
        }
        assert result.document.unit_time_stats.first_unit_reaction.min == 60
        assert result.document.unit_time_stats.travel.sum == 180 + 540
        assert result.document.personnel_stats.num_unique_responders == 4
        assert set(result.document.region_stats) == {"central", "north", "south"}

    def test_json_run(self, pipeline, tmp_path):
        path = tmp_path / "incidents.json"
        path.write_text(json.dumps([{
            "incident_number": "24-0100",
            "station": "Station 35",
            "incident_type": "321",
            "units": [{
                "unit_id": "M35",
                "dispatched_at": "2024-03-14T02:00:00",
                "en_route_at": "2024-03-14T02:01:30",
                "arrived_at": "2024-03-14T02:09:00",
                "cleared_at": "2024-03-14T03:00:00",
                "personnel": [{"person_id": "P7"}],
            }],
        }]))
        result = pipeline.process(path, "json", ProcessingOptions(now=NOW))

        assert result.success
        document = result.document
        assert document.incident_stats.num_nighttime_incidents == 1
        assert document.unit_time_stats.first_unit_reaction.sum == 90
        assert document.region_stats["north"].unit_travel_time.sum == 450

    def test_malformed_input_produces_no_document(self, pipeline, tmp_path):
        path = tmp_path / "report.csv"
        path.write_text(CSV_HEADER + "\n24-0001,31,311,P1,E31,,garbage,,,,\n")
        callbacks = RecordingCallbacks()
        result = pipeline.process(path, "csv", callbacks=callbacks)

        assert not result.success
        assert result.document is None
        assert result.stages_completed == []
        assert result.errors[0].startswith("normalizing:")
        assert callbacks.events == [("start", "normalizing"), ("error", "normalizing")]

    def test_bad_window_fails_before_reconciling(self, pipeline, csv_path):
        options = ProcessingOptions(start_date=date(2024, 3, 20), stop_date=date(2024, 3, 1))
        result = pipeline.process(csv_path, "csv", options)
        assert not result.success
        assert result.stages_completed == ["normalizing", "grouping"]
        assert result.errors[0].startswith("reconciling:")

    @pytest.mark.parametrize("day_range,overlapping,in_window", [(1, 0, 1), (2, 2, 2)])
    def test_overlap_pair_split_by_window_edge(self, pipeline, tmp_path, day_range,
                                               overlapping, in_window):
        """A pair straddling the window start counts both incidents or neither."""
        path = tmp_path / "report.csv"
        path.write_text("\n".join([
            CSV_HEADER,
            "24-0010,Station 31,311,P1,E31,2024-03-01 23:49:00,2024-03-01 23:50:00,"
            "2024-03-01 23:52:00,2024-03-01 23:58:00,2024-03-02 00:40:00,2024-03-02 00:40:00",
            "24-0011,Station 34,321,P2,E34,2024-03-02 00:09:00,2024-03-02 00:10:00,"
            "2024-03-02 00:12:00,2024-03-02 00:18:00,2024-03-02 00:30:00,2024-03-02 00:30:00",
        ]) + "\n")
        result = pipeline.process(path, "csv", ProcessingOptions(day_range=day_range, now=NOW))

        stats = result.document.incident_stats
        assert stats.num_incidents == in_window
        assert stats.num_overlapping_incidents == overlapping

    def test_json_coordinates_pick_region(self, pipeline, tmp_path):
        """Incidents without a station fall back to the default coordinate boxes."""
        path = tmp_path / "incidents.json"
        path.write_text(json.dumps([{
            "id": "24-0400",
            "type_code": "321",
            "location": {"latitude": 48.6, "longitude": -123.0},
            "units": [{"name": "M35", "dispatch_time": "2024-03-14T08:00:00"}],
        }]))
        result = pipeline.process(path, "json", ProcessingOptions(now=NOW))
        assert list(result.document.region_stats) == ["north"]

    def test_unknown_format(self, pipeline, csv_path):
        result = pipeline.process(csv_path, "xml")
        assert not result.success
        assert "Unsupported input format" in result.errors[0]

    def test_callbacks_see_every_stage(self, pipeline, csv_path):
        callbacks = RecordingCallbacks()
        pipeline.process(csv_path, "csv", callbacks=callbacks)
        assert [name for kind, name in callbacks.events if kind == "complete"] == StatsPipeline.STAGES

    def test_reproducible(self, pipeline, csv_path):
        first = pipeline.process(csv_path, "csv", ProcessingOptions(now=NOW)).document
        second = StatsPipeline().process(csv_path, "csv", ProcessingOptions(now=NOW)).document
        assert first.to_json() == second.to_json()

    def test_empty_records(self, pipeline):
        result = pipeline.process_records([], ProcessingOptions(now=NOW))
        assert result.success
        assert result.document.incident_stats.num_incidents == 0

    def test_custom_rules(self, csv_path):
        rules = ClassificationRules(regions=[RegionRule(name="all", stations=["Station"])])
        result = StatsPipeline(rules=rules).process(csv_path, "csv", ProcessingOptions(now=NOW))
        assert list(result.document.region_stats) == ["all"]

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("INCIDENT_STATS_MIN_INTERVAL_SECONDS", "5")
        monkeypatch.setenv("INCIDENT_STATS_TIMEZONE", "America/Los_Angeles")
        monkeypatch.setenv("INCIDENT_STATS_DATE_FORMAT", "%d/%m/%Y %H:%M")
        pipeline = StatsPipeline.from_settings(Settings())
        assert pipeline.min_interval_seconds == 5
        assert str(pipeline.zone) == "America/Los_Angeles"
        assert pipeline.normalizer.date_format == "%d/%m/%Y %H:%M"
