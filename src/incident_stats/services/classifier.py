"""Classifier - maps incidents to a region and an incident-type bucket.

Both rule sets come from ClassificationRules so each district can supply
its own station groups and type-code prefixes.
"""

from typing import Optional

from incident_stats.models import ClassificationRules, IncidentGroup, IncidentType


def has_prefix(code: Optional[str], prefixes: list[str]) -> bool:
    """True when the stringified code starts with any prefix."""
    if code is None:
        return False
    return any(str(code).startswith(prefix) for prefix in prefixes)


class IncidentClassifier:
    """Applies ordered, first-match-wins classification rules."""

    def __init__(self, rules: Optional[ClassificationRules] = None):
        self.rules = rules or ClassificationRules()

    def classify_region(
        self,
        station_id: Optional[str],
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> str:
        """Region for a station id, falling back to coordinates.

        Station ids are tried first, across all rules in configured order
        (a rule matches when one of its ids occurs in the record's station).
        Only then are the coordinates tested against each rule's bounding box.
        """
        if station_id:
            for rule in self.rules.regions:
                if any(s in station_id for s in rule.stations):
                    return rule.name
        if latitude is not None and longitude is not None:
            for rule in self.rules.regions:
                if rule.bounds is not None and rule.bounds.contains(latitude, longitude):
                    return rule.name
        return self.rules.default_region

    def classify_type(self, incident_type_code: Optional[str]) -> IncidentType:
        """Bucket for a type code.

        Order matters: cancelled codes are checked before the broader
        downgrade prefixes that also cover them.
        """
        types = self.rules.incident_types
        if has_prefix(incident_type_code, types.medical):
            return IncidentType.MEDICAL_RESCUE
        if has_prefix(incident_type_code, types.fire):
            return IncidentType.FIRE
        if has_prefix(incident_type_code, types.cancelled):
            return IncidentType.CANCELLED
        if has_prefix(incident_type_code, types.downgraded):
            return IncidentType.DOWNGRADED
        return IncidentType.OTHER

    def is_backfill(self, incident_type_code: Optional[str]) -> bool:
        """Standby/backfill assignments never trigger overlap accounting."""
        return has_prefix(incident_type_code, self.rules.backfill_types)

    def is_pov(self, apparatus_name: Optional[str]) -> bool:
        return apparatus_name is not None and apparatus_name in self.rules.pov_apparatus

    def classify(self, group: IncidentGroup) -> tuple[str, IncidentType]:
        """Region and type for an incident, read from its base record."""
        base = group.base_record
        region = self.classify_region(base.station_id, base.latitude, base.longitude)
        return region, self.classify_type(base.incident_type_code)
