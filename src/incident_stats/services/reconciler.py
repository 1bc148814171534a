"""Timeline Reconciler - derives per-incident timing and workload values.

Responsible for:
- Detecting overlapping incidents with an explicit fold over dispatch order
- Collapsing double-logged unit rows
- First-unit reaction time and per-unit travel, to-scene and on-scene times
- One time span per responder, even when they changed apparatus
- Counting apparatus used, excluding personally-owned vehicles
- Day/night and region/type classification

Export data is dirty. Anything wrong with a single incident is recorded as
a diagnostic and the affected value is dropped; it never stops the run.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from incident_stats.models import IncidentGroup, RawUnitRecord, TimelineMetrics
from incident_stats.services.classifier import IncidentClassifier
from incident_stats.utils.time_utils import (
    is_nighttime,
    seconds_between,
    valid_interval,
    whole,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlapState:
    """Accumulator for the overlap fold.

    Two states: outside an overlap run, and inside one. ``previous_end`` is
    when the previous incident (in dispatch order) fully cleared.
    """

    previous_end: Optional[datetime] = None
    in_overlap_run: bool = False


@dataclass(frozen=True)
class OverlapStep:
    """Outcome of feeding one incident to the fold."""

    state: OverlapState
    is_overlapping: bool
    flags_previous: bool
    increment: int


def step_overlap(
    state: OverlapState,
    dispatched_at: Optional[datetime],
    last_unit_cleared_at: Optional[datetime],
    is_backfill: bool = False,
) -> OverlapStep:
    """Advance the overlap state machine by one incident.

    An incident dispatched before the previous one cleared overlaps it.
    Entering a run counts both incidents; staying in a run counts only the
    new one. Backfill incidents never trigger an overlap and leave the run
    state as it was.
    """
    overlaps = (
        state.previous_end is not None
        and dispatched_at is not None
        and dispatched_at < state.previous_end
    )

    if not overlaps:
        return OverlapStep(OverlapState(last_unit_cleared_at, False), False, False, 0)
    if is_backfill:
        return OverlapStep(
            OverlapState(last_unit_cleared_at, state.in_overlap_run), False, False, 0
        )
    if state.in_overlap_run:
        return OverlapStep(OverlapState(last_unit_cleared_at, True), True, False, 1)
    # the previous incident was not flagged when it was processed; count it now
    return OverlapStep(OverlapState(last_unit_cleared_at, True), True, True, 2)


@dataclass
class OverlapResult:
    flags: list[bool]
    count: int


class TimelineReconciler:
    """Turns IncidentGroups into TimelineMetrics."""

    def __init__(
        self,
        classifier: Optional[IncidentClassifier] = None,
        min_interval_seconds: float = 2.0,
    ):
        """Initialize the reconciler.

        Args:
            classifier: Region/type classifier (default rules if omitted)
            min_interval_seconds: Timing deltas at or below this are bad data
        """
        self.classifier = classifier or IncidentClassifier()
        self.min_interval_seconds = min_interval_seconds

    def reconcile(
        self,
        groups: list[IncidentGroup],
        window: Optional[tuple[date, date]] = None,
    ) -> list[TimelineMetrics]:
        """Compute metrics for every incident.

        Args:
            groups: IncidentGroups in first-dispatch order
            window: First and last dispatch date taking part in overlap
                detection; all incidents when omitted

        Returns:
            One TimelineMetrics per group, same order
        """
        overlaps = self.detect_overlaps(groups, window)
        metrics = [
            self.reconcile_incident(group, is_overlapping=flag)
            for group, flag in zip(groups, overlaps.flags)
        ]
        malformed = sum(1 for m in metrics if m.is_malformed)
        logger.info(
            "Reconciled %d incidents (%d overlapping, %d malformed)",
            len(metrics), overlaps.count, malformed,
        )
        return metrics

    def detect_overlaps(
        self,
        groups: list[IncidentGroup],
        window: Optional[tuple[date, date]] = None,
    ) -> OverlapResult:
        """Fold step_overlap over the incidents in dispatch order.

        Malformed incidents (no dispatch time at all) and incidents
        dispatched outside the window are skipped and leave the state
        untouched, so both members of every counted pair are in the window.
        """
        flags = [False] * len(groups)
        count = 0
        state = OverlapState()
        previous_index: Optional[int] = None

        for index, group in enumerate(groups):
            if group.is_malformed:
                continue
            if window is not None and not window[0] <= group.dispatched_at.date() <= window[1]:
                continue
            step = step_overlap(
                state,
                group.dispatched_at,
                group.last_unit_cleared_at,
                self.classifier.is_backfill(group.base_record.incident_type_code),
            )
            if step.is_overlapping:
                flags[index] = True
            if step.flags_previous and previous_index is not None:
                flags[previous_index] = True
            count += step.increment
            state = step.state
            previous_index = index

        return OverlapResult(flags=flags, count=count)

    def reconcile_incident(
        self,
        group: IncidentGroup,
        is_overlapping: bool = False,
    ) -> TimelineMetrics:
        """Compute metrics for a single incident."""
        incident_id = group.incident_id
        base = group.base_record
        region, incident_type = self.classifier.classify(group)

        if group.is_malformed:
            logger.warning("%s has no dispatch time on any unit; excluded from timings", incident_id)
            return TimelineMetrics(
                incident_id=incident_id,
                region=region,
                incident_type=incident_type,
                is_malformed=True,
                diagnostics=["no dispatch time on any unit"],
            )

        diagnostics: list[str] = []
        dispatched_at = group.dispatched_at
        minimum = self.min_interval_seconds

        alarm_delta = seconds_between(base.alarm_at, dispatched_at)
        if alarm_delta is not None and alarm_delta < minimum:
            diagnostics.append("incorrect alarm & dispatch times")

        unit_rows = self.dedupe_unit_rows(group.records)

        if self.classifier.is_backfill(base.incident_type_code):
            if base.en_route_at is not None or base.arrival_at is not None:
                diagnostics.append("standby yet has en route or arrival times")
            reaction_time = None
            travel_times: list[Optional[float]] = []
            to_scene_times: list[Optional[float]] = []
            on_scene_times: list[Optional[float]] = []
        else:
            reaction_time = self.first_unit_reaction(unit_rows, dispatched_at)
            travel_times = [valid_interval(r.en_route_at, r.arrival_at, minimum) for r in unit_rows]
            to_scene_times = [valid_interval(r.dispatched_at, r.arrival_at, minimum) for r in unit_rows]
            on_scene_times = [valid_interval(r.arrival_at, r.clear_at, minimum) for r in unit_rows]

            if reaction_time is None:
                diagnostics.append("no reaction time")
            if not any(t is not None for t in travel_times):
                diagnostics.append("empty travel times")
            if not any(t is not None for t in on_scene_times):
                diagnostics.append("empty on-scene times")

        personnel_ids, personnel_times = self.personnel_spans(group.records)

        for note in diagnostics:
            logger.debug("%s: %s", incident_id, note)

        return TimelineMetrics(
            incident_id=incident_id,
            dispatched_at=dispatched_at,
            region=region,
            incident_type=incident_type,
            reaction_time_seconds=reaction_time,
            travel_times=travel_times,
            to_scene_times=to_scene_times,
            on_scene_times=on_scene_times,
            incident_time_seconds=valid_interval(
                dispatched_at, group.last_unit_cleared_at, minimum
            ),
            personnel_ids=personnel_ids,
            personnel_times=personnel_times,
            apparatus_used=self.apparatus_used(group.records),
            is_overlapping=is_overlapping,
            is_nighttime=is_nighttime(dispatched_at),
            diagnostics=diagnostics,
        )

    @staticmethod
    def dedupe_unit_rows(records: tuple[RawUnitRecord, ...]) -> list[RawUnitRecord]:
        """Drop rows identical to the row before them, ignoring the responder.

        A unit with three crew members appears three times in the export;
        timers are per unit, so it should count once.
        """
        rows: list[RawUnitRecord] = []
        previous = None
        for record in records:
            signature = record.unit_signature()
            if signature != previous:
                rows.append(record)
            previous = signature
        return rows

    def first_unit_reaction(
        self,
        unit_rows: list[RawUnitRecord],
        dispatched_at: Optional[datetime],
    ) -> Optional[float]:
        """Seconds from incident dispatch to the earliest valid en-route time.

        Rows whose own dispatch-to-en-route delta is at or below the minimum
        are copy-paste mistakes and cannot be the first unit.
        """
        candidates = [
            r for r in unit_rows
            if r.dispatched_at is not None
            and r.en_route_at is not None
            and seconds_between(r.dispatched_at, r.en_route_at) > self.min_interval_seconds
        ]
        if not candidates:
            return None

        first = min(candidates, key=lambda r: r.en_route_at)
        start = dispatched_at or first.dispatched_at
        return whole(seconds_between(start, first.en_route_at))

    def personnel_spans(
        self,
        records: tuple[RawUnitRecord, ...],
    ) -> tuple[list[str], list[Optional[float]]]:
        """One entry per responder: earliest dispatch to latest clear.

        A responder who moved between apparatus has several rows; using the
        span instead of a sum avoids counting the overlap twice. Spans at or
        below the minimum interval are None.
        """
        rows_by_person: dict[str, list[RawUnitRecord]] = {}
        for record in records:
            if record.personnel_id is None:
                continue
            rows_by_person.setdefault(record.personnel_id, []).append(record)

        ids: list[str] = []
        times: list[Optional[float]] = []
        for person, rows in rows_by_person.items():
            starts = [r.dispatched_at for r in rows if r.dispatched_at is not None]
            ends = [r.clear_at for r in rows if r.clear_at is not None]
            span = None
            if starts and ends:
                span = valid_interval(min(starts), max(ends), self.min_interval_seconds)
            ids.append(person)
            times.append(span)
        return ids, times

    def apparatus_used(self, records: tuple[RawUnitRecord, ...]) -> list[str]:
        """Unique apparatus names in first-seen order, without POV."""
        names: list[str] = []
        for record in records:
            name = record.apparatus_name
            if name is None or self.classifier.is_pov(name) or name in names:
                continue
            names.append(name)
        return names
