"""Record Normalizer - parses raw incident exports into RawUnitRecords.

Responsible for:
- Reading ESO ad-hoc CSV reports and NERIS-style JSON incident graphs
- Mapping each format's field names onto the single RawUnitRecord shape
- Strict date/number casting; any malformed value aborts the parse
- Turning blank date cells into None
- Ordering records by dispatch time (paging order)
"""

import json
import logging
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd
from pandas.tseries.api import guess_datetime_format
from pydantic import ValidationError

from incident_stats.errors import NormalizationError
from incident_stats.models import RawUnitRecord, TIMESTAMP_FIELDS, to_zone


logger = logging.getLogger(__name__)


# ESO report column -> RawUnitRecord field
CSV_COLUMNS = {
    "Incident Number": "incident_id",
    "Station": "station_id",
    "Incident Type Code": "incident_type_code",
    "User Login ID": "personnel_id",
    "Apparatus Name": "apparatus_name",
    "Latitude": "latitude",
    "Longitude": "longitude",
    "Alarm Date": "alarm_at",
    "Dispatched Date": "dispatched_at",
    "En Route Date": "en_route_at",
    "Arrival Date": "arrival_at",
    "Clear Date": "clear_at",
    "Last Unit Cleared Date": "last_unit_cleared_at",
}

REQUIRED_CSV_COLUMNS = ("Incident Number",)

NUMBER_FIELDS = ("latitude", "longitude")

# NERIS-style JSON keys, first present key wins
INCIDENT_KEYS = {
    "incident_id": ("incident_number", "neris_id", "id"),
    "station_id": ("station", "station_id"),
    "incident_type_code": ("incident_type", "type_code"),
    "alarm_at": ("call_create", "created_at"),
    "last_unit_cleared_at": ("closed_at", "clear_time", "last_unit_clear"),
    "latitude": ("latitude", "location.latitude"),
    "longitude": ("longitude", "location.longitude"),
}

UNIT_KEYS = {
    "apparatus_name": ("unit_id", "apparatus_id", "name"),
    "dispatched_at": ("dispatched_at", "dispatch_time"),
    "en_route_at": ("en_route_at", "enroute_time"),
    "arrival_at": ("arrived_at", "arrival_time"),
    "clear_at": ("cleared_at", "clear_time"),
}

PERSON_ID_KEYS = ("person_id", "member_id", "name")
PERSON_START_KEYS = ("arrived_at", "start_time")
PERSON_END_KEYS = ("cleared_at", "end_time")

# NERIS exports are ISO 8601 throughout
JSON_DATE_FORMAT = "ISO8601"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def lookup(mapping: dict, keys: Iterable[str]) -> Any:
    """Return the first non-blank value among keys; dotted keys walk nested dicts."""
    for key in keys:
        value: Any = mapping
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                value = None
                break
            value = value[part]
        if not is_blank(value):
            return value
    return None


class RecordNormalizer:
    """Turns raw export rows into dispatch-ordered RawUnitRecords."""

    def __init__(self, zone: tzinfo = timezone.utc, date_format: Optional[str] = None):
        """Initialize the normalizer.

        Args:
            zone: Evaluation timezone; naive timestamps are wall-clock time here
            date_format: strptime format for every date cell. When omitted, a
                CSV export's format is inferred once from its first date cell
                and JSON exports are read as ISO 8601.
        """
        self.zone = zone
        self.date_format = date_format

    # ------------------------------------------------------------------
    # Format adapters
    # ------------------------------------------------------------------

    def read_csv(self, csv_path: str | Path) -> list[RawUnitRecord]:
        """Parse an ESO ad-hoc CSV report.

        Args:
            csv_path: Path to the CSV export

        Returns:
            RawUnitRecords sorted by dispatch time

        Raises:
            NormalizationError: On a missing required column or malformed cell
        """
        path = Path(csv_path)
        if not path.exists():
            raise NormalizationError(f"CSV file not found: {path}")

        try:
            frame = pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                encoding="utf-8-sig",
                skip_blank_lines=True,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise NormalizationError(f"Unreadable CSV {path}: {e}") from e

        frame.columns = [str(c).strip() for c in frame.columns]
        logger.info("Read %d rows from %s", len(frame), path)
        return self.normalize_rows(frame.to_dict("records"))

    def normalize_rows(self, rows: list[dict[str, Any]]) -> list[RawUnitRecord]:
        """Normalize tabular rows keyed by ESO column name.

        Row numbers in errors count the header as row 1. Every date cell in
        the export must use the same format.
        """
        if rows:
            columns = {c.strip() for c in rows[0].keys()}
            missing = [c for c in REQUIRED_CSV_COLUMNS if c not in columns]
            if missing:
                raise NormalizationError(f"Missing required column(s): {', '.join(missing)}")

        mapped_rows = []
        for row in rows:
            fields: dict[str, Any] = {}
            for column, value in row.items():
                field = CSV_COLUMNS.get(column.strip())
                if field is not None:
                    fields[field] = value
            mapped_rows.append(fields)

        date_format = self.date_format or self.infer_date_format(mapped_rows)
        records = [
            self._build_record(fields, index + 2, date_format)
            for index, fields in enumerate(mapped_rows)
        ]
        return self.sort_records(records)

    @staticmethod
    def infer_date_format(rows: list[dict[str, Any]]) -> Optional[str]:
        """strptime format of the first text date cell, applied to the whole export.

        Raises:
            NormalizationError: If that cell's format cannot be recognised
        """
        for index, fields in enumerate(rows):
            for field in TIMESTAMP_FIELDS:
                value = fields.get(field)
                if not isinstance(value, str) or is_blank(value):
                    continue
                date_format = guess_datetime_format(value.strip())
                if date_format is None:
                    raise NormalizationError(
                        f"Unrecognised date format {value!r}", row=index + 2, column=field
                    )
                logger.debug("Using date format %s", date_format)
                return date_format
        return None

    def read_json(self, json_path: str | Path) -> list[RawUnitRecord]:
        """Parse a NERIS-style JSON export file."""
        path = Path(json_path)
        if not path.exists():
            raise NormalizationError(f"JSON file not found: {path}")
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise NormalizationError(f"Invalid JSON in {path}: {e.msg}", row=e.lineno) from e

        if isinstance(data, dict):
            data = data.get("incidents")
        if not isinstance(data, list):
            raise NormalizationError(f"Expected a list of incidents in {path}")
        return self.normalize_incidents(data)

    def normalize_incidents(self, incidents: list[dict[str, Any]]) -> list[RawUnitRecord]:
        """Flatten incident/unit/personnel objects into one row per unit and responder.

        Row numbers in errors are the incident's 1-based position in the list.
        """
        date_format = self.date_format or JSON_DATE_FORMAT
        records = []
        for position, incident in enumerate(incidents, start=1):
            if not isinstance(incident, dict):
                raise NormalizationError("Incident entry is not an object", row=position)

            base = {field: lookup(incident, keys) for field, keys in INCIDENT_KEYS.items()}
            units = incident.get("units") or incident.get("apparatus") or []
            crew = incident.get("personnel") or incident.get("crew") or []

            unit_rows: dict[str, list[dict]] = {}
            unit_order: list[str] = []
            for unit in units:
                unit_fields = {field: lookup(unit, keys) for field, keys in UNIT_KEYS.items()}
                name = str(unit_fields.get("apparatus_name") or f"unit-{len(unit_order)}")
                people = [lookup(p, PERSON_ID_KEYS) for p in unit.get("personnel") or []]
                rows = [{**base, **unit_fields, "personnel_id": person} for person in people]
                if name not in unit_rows:
                    unit_rows[name] = []
                    unit_order.append(name)
                unit_rows[name].extend(rows or [{**base, **unit_fields}])

            loose_rows = []
            for person in crew:
                person_id = lookup(person, PERSON_ID_KEYS)
                unit_name = lookup(person, ("unit_id", "apparatus_id"))
                if unit_name is not None and str(unit_name) in unit_rows:
                    rows = unit_rows[str(unit_name)]
                    if rows[-1].get("personnel_id") is None:
                        rows[-1] = {**rows[-1], "personnel_id": person_id}
                    else:
                        rows.append({**rows[0], "personnel_id": person_id})
                else:
                    loose_rows.append({
                        **base,
                        "personnel_id": person_id,
                        "dispatched_at": lookup(person, PERSON_START_KEYS),
                        "clear_at": lookup(person, PERSON_END_KEYS),
                    })

            incident_rows = [row for name in unit_order for row in unit_rows[name]]
            incident_rows.extend(loose_rows)
            if not incident_rows:
                incident_rows.append(dict(base))

            for row in incident_rows:
                records.append(self._build_record(row, position, date_format))

        logger.info("Flattened %d incidents into %d unit records", len(incidents), len(records))
        return self.sort_records(records)

    # ------------------------------------------------------------------
    # Casting
    # ------------------------------------------------------------------

    def _build_record(
        self,
        fields: dict[str, Any],
        row: int,
        date_format: Optional[str],
    ) -> RawUnitRecord:
        """Cast raw values and validate them into a RawUnitRecord."""
        values: dict[str, Any] = {}
        for field, value in fields.items():
            if field in TIMESTAMP_FIELDS:
                values[field] = self._parse_timestamp(value, row, field, date_format)
            elif field in NUMBER_FIELDS:
                values[field] = self._parse_number(value, row, field)
            elif is_blank(value):
                values[field] = None
            else:
                values[field] = str(value).strip()

        try:
            return RawUnitRecord(**values)
        except ValidationError as e:
            raise NormalizationError(f"Invalid record: {e.errors()[0]['msg']}", row=row) from e

    def _parse_timestamp(
        self,
        value: Any,
        row: int,
        field: str,
        date_format: Optional[str],
    ) -> Optional[datetime]:
        if is_blank(value):
            return None
        if isinstance(value, pd.Timestamp):
            value = value.to_pydatetime()
        if isinstance(value, datetime):
            return to_zone(value, self.zone)
        if not isinstance(value, str):
            raise NormalizationError(f"Unsupported timestamp value {value!r}", row=row, column=field)

        try:
            parsed = pd.to_datetime(value.strip(), format=date_format)
        except (ValueError, TypeError, OverflowError) as e:
            raise NormalizationError(f"Malformed timestamp {value!r}", row=row, column=field) from e
        if pd.isna(parsed):
            raise NormalizationError(f"Malformed timestamp {value!r}", row=row, column=field)
        return to_zone(parsed.to_pydatetime(), self.zone)

    def _parse_number(self, value: Any, row: int, field: str) -> Optional[float]:
        if is_blank(value):
            return None
        try:
            return float(pd.to_numeric(value, errors="raise"))
        except (ValueError, TypeError) as e:
            raise NormalizationError(f"Malformed number {value!r}", row=row, column=field) from e

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    @staticmethod
    def sort_records(records: list[RawUnitRecord]) -> list[RawUnitRecord]:
        """Stable sort by dispatch time; rows without one go last."""
        return sorted(
            records,
            key=lambda r: (
                r.dispatched_at is None,
                r.dispatched_at.timestamp() if r.dispatched_at else 0.0,
            ),
        )
