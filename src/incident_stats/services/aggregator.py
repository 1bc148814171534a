"""Aggregator - reduces per-incident metrics into the published StatsDocument.

Responsible for:
- Choosing the detailed-stats window (trailing day range by default)
- Summary statistics (sum/mean/median/min/max) over flattened values
- Global, per-type, per-region and per-day breakdowns
- Date ranges for the window and for the whole input
"""

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

import numpy as np

from incident_stats.errors import ConfigurationError
from incident_stats.models import (
    ApparatusStats,
    IncidentGroup,
    IncidentStats,
    PersonnelStats,
    RegionStats,
    StatsDocument,
    SummaryStats,
    TimelineMetrics,
    UnitTimeStats,
    empty_type_counts,
    utc_now,
)
from incident_stats.utils.time_utils import add_days, iter_days, whole


logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int = 0) -> int | float:
    """Round halves away from zero, e.g. 2.5 -> 3 (numpy rounds to even)."""
    exponent = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    return whole(float(rounded))


def summarize(values: Iterable[Optional[float]], places: int = 0) -> SummaryStats:
    """Summary statistics over the non-null values.

    Args:
        values: Values to summarize; None entries are skipped
        places: Decimal places kept for mean, quartiles and median

    Returns:
        SummaryStats; all zeros when nothing remains
    """
    data = np.asarray([v for v in values if v is not None], dtype=float)
    if data.size == 0:
        return SummaryStats()

    return SummaryStats(
        sum=whole(float(np.sum(data))),
        mean=round_half_up(float(np.mean(data)), places),
        q1=round_half_up(float(np.percentile(data, 25)), places),
        median=round_half_up(float(np.median(data)), places),
        q3=round_half_up(float(np.percentile(data, 75)), places),
        min=whole(float(np.min(data))),
        max=whole(float(np.max(data))),
    )


class StatsAggregator:
    """Builds a StatsDocument from TimelineMetrics."""

    # Counts per incident keep one decimal; durations are whole seconds
    COUNT_PLACES = 1

    def __init__(
        self,
        day_range: int = 30,
        start_date: Optional[date] = None,
        stop_date: Optional[date] = None,
    ):
        """Initialize the aggregator.

        Args:
            day_range: Days in the detailed window, counting the stop date
            start_date: Explicit first day of the window
            stop_date: Explicit last day; defaults to the latest dispatch date
        """
        if day_range < 1:
            raise ConfigurationError(f"day_range must be at least 1, got {day_range}")
        self.day_range = day_range
        self.start_date = start_date
        self.stop_date = stop_date

    def window(
        self,
        incidents: Sequence[IncidentGroup | TimelineMetrics],
    ) -> Optional[tuple[date, date]]:
        """First and last calendar day of the detailed window.

        Args:
            incidents: Groups or metrics; only their dispatch times are read

        Returns:
            (start, stop), or None when there is no dispatch date to anchor on
        """
        stop = self.stop_date
        if stop is None:
            dispatched = [i.dispatched_at for i in incidents if i.dispatched_at is not None]
            if not dispatched:
                return None
            stop = max(dispatched).date()

        start = self.start_date or add_days(stop, 1 - self.day_range)
        if start > stop:
            raise ConfigurationError(f"Window start {start} is after stop {stop}")
        return start, stop

    def aggregate(
        self,
        metrics: list[TimelineMetrics],
        now: Optional[datetime] = None,
    ) -> StatsDocument:
        """Reduce metrics into the stats document.

        Args:
            metrics: One entry per unique incident, in dispatch order
            now: Value for ``updated_at``; pass it for reproducible output

        Returns:
            The complete StatsDocument. Incidents without a dispatch time
            cannot be placed in the window and only count toward the
            all-time total.
        """
        bounds = self.window(metrics)
        in_window = self._in_window(metrics, bounds)

        dispatched = [m.dispatched_at for m in metrics if m.dispatched_at is not None]
        document = StatsDocument(
            updated_at=now or utc_now(),
            date_range_from=bounds[0] if bounds else None,
            date_range_to=bounds[1] if bounds else None,
            date_range_all_from=min(dispatched) if dispatched else None,
            date_range_all_to=max(dispatched) if dispatched else None,
            parse_warnings=sum(len(m.diagnostics) for m in metrics),
            unit_time_stats=self.unit_time_stats(in_window),
            personnel_stats=self.personnel_stats(in_window),
            region_stats=self.region_stats(in_window),
            incident_stats=self.incident_stats(metrics, in_window, bounds),
            apparatus_stats=self.apparatus_stats(in_window),
        )

        logger.info(
            "Aggregated %d of %d incidents (window %s to %s)",
            len(in_window), len(metrics), document.date_range_from, document.date_range_to,
        )
        return document

    @staticmethod
    def _in_window(
        metrics: list[TimelineMetrics],
        bounds: Optional[tuple[date, date]],
    ) -> list[TimelineMetrics]:
        if bounds is None:
            return []
        start, stop = bounds
        return [
            m for m in metrics
            if m.dispatched_at is not None and start <= m.dispatched_at.date() <= stop
        ]

    def incident_stats(
        self,
        metrics: list[TimelineMetrics],
        in_window: list[TimelineMetrics],
        bounds: Optional[tuple[date, date]],
    ) -> IncidentStats:
        """Incident counts; everything except the all-time total is windowed."""
        types = empty_type_counts()
        for m in in_window:
            types[m.incident_type] += 1

        daily_counts: dict[str, int] = {}
        if bounds is not None:
            daily_counts = {day.isoformat(): 0 for day in iter_days(*bounds)}
        for m in in_window:
            daily_counts[m.dispatched_at.date().isoformat()] += 1

        return IncidentStats(
            types=types,
            num_incidents_last_365_days=len(metrics),
            num_incidents=len(in_window),
            num_daytime_incidents=sum(1 for m in in_window if not m.is_nighttime),
            num_nighttime_incidents=sum(1 for m in in_window if m.is_nighttime),
            incident_times=summarize(m.incident_time_seconds for m in in_window),
            num_overlapping_incidents=sum(1 for m in in_window if m.is_overlapping),
            num_per_day=summarize(daily_counts.values()),
            daily_counts=daily_counts,
        )

    def unit_time_stats(self, metrics: list[TimelineMetrics]) -> UnitTimeStats:
        """Reaction and per-unit timers, flattened across incidents."""
        return UnitTimeStats(
            first_unit_reaction=summarize(m.reaction_time_seconds for m in metrics),
            travel=summarize(t for m in metrics for t in m.travel_times),
            to_scene=summarize(t for m in metrics for t in m.to_scene_times),
            on_scene=summarize(t for m in metrics for t in m.on_scene_times),
        )

    def personnel_stats(self, metrics: list[TimelineMetrics]) -> PersonnelStats:
        unique = {person for m in metrics for person in m.personnel_ids}
        return PersonnelStats(
            time_on_incidents=summarize(m.personnel_total_seconds for m in metrics),
            num_per_incidents=summarize(
                (len(m.personnel_ids) for m in metrics), places=self.COUNT_PLACES
            ),
            num_unique_responders=len(unique),
        )

    def apparatus_stats(self, metrics: list[TimelineMetrics]) -> ApparatusStats:
        unique = {name for m in metrics for name in m.apparatus_used}
        return ApparatusStats(
            num_per_incident=summarize(
                (len(m.apparatus_used) for m in metrics), places=self.COUNT_PLACES
            ),
            num_unique_used=len(unique),
        )

    def region_stats(self, in_window: list[TimelineMetrics]) -> dict[str, RegionStats]:
        """Per-region breakdown for regions that had incidents, in first-seen order."""
        by_region: dict[str, list[TimelineMetrics]] = {}
        for m in in_window:
            by_region.setdefault(m.region, []).append(m)

        stats = {}
        for region, region_metrics in by_region.items():
            types = empty_type_counts()
            for m in region_metrics:
                types[m.incident_type] += 1
            stats[region] = RegionStats(
                incident_types=types,
                num_incidents=len(region_metrics),
                unit_travel_time=summarize(
                    t for m in region_metrics for t in m.travel_times
                ),
            )
        return stats
