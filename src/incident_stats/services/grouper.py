"""Incident Grouper - collects unit records into incidents in dispatch order.

Incident numbers are typed in by people and do not always increase with
real dispatch time, so groups are ordered by where each incident first
appears in the dispatch-ordered record stream, never by incident number.
"""

import logging

from incident_stats.models import IncidentGroup, RawUnitRecord


logger = logging.getLogger(__name__)


class IncidentGrouper:
    """Groups dispatch-ordered RawUnitRecords by incident id."""

    def group(self, records: list[RawUnitRecord]) -> list[IncidentGroup]:
        """Group records by incident.

        Args:
            records: Normalized records, already sorted by dispatch time

        Returns:
            IncidentGroups in first-dispatch order; each group keeps the
            relative order of its records
        """
        by_incident: dict[str, list[RawUnitRecord]] = {}
        for record in records:
            # dicts keep insertion order, which is first-appearance order here
            by_incident.setdefault(record.incident_id, []).append(record)

        groups = [
            IncidentGroup(incident_id=incident_id, records=tuple(incident_records))
            for incident_id, incident_records in by_incident.items()
        ]
        logger.debug("Grouped %d records into %d incidents", len(records), len(groups))
        return groups
