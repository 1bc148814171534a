"""Stats Pipeline - coordinates the full aggregation run.

Responsible for:
- Running normalize -> group -> reconcile -> aggregate in order
- Progress callbacks for CLI display
- Turning fatal errors into a failed result with no document
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from pathlib import Path
from typing import Optional, Protocol

from incident_stats.config import Settings
from incident_stats.errors import IncidentStatsError
from incident_stats.models import (
    ClassificationRules,
    IncidentGroup,
    RawUnitRecord,
    StatsDocument,
    TimelineMetrics,
)
from incident_stats.services.aggregator import StatsAggregator


logger = logging.getLogger(__name__)


@dataclass
class ProcessingOptions:
    """Options for one aggregation run."""

    day_range: int = 30
    start_date: Optional[date] = None
    stop_date: Optional[date] = None
    now: Optional[datetime] = None


@dataclass
class ProcessingResult:
    """Result of an aggregation run. ``document`` is None unless successful."""

    success: bool
    document: Optional[StatsDocument]
    duration_seconds: float
    stages_completed: list[str]
    errors: list[str]
    metrics: dict = field(default_factory=dict)


class ProgressCallbacks(Protocol):
    """Protocol for progress callbacks."""

    def on_stage_start(self, stage_name: str) -> None:
        """Called when a stage begins."""
        ...

    def on_stage_complete(self, stage_name: str, duration: float) -> None:
        """Called when a stage completes successfully."""
        ...

    def on_error(self, stage_name: str, error: Exception) -> None:
        """Called when a stage encounters an error."""
        ...


@dataclass
class DefaultProgressCallbacks:
    """Default no-op progress callbacks."""

    def on_stage_start(self, stage_name: str) -> None:
        pass

    def on_stage_complete(self, stage_name: str, duration: float) -> None:
        pass

    def on_error(self, stage_name: str, error: Exception) -> None:
        pass


class StatsPipeline:
    """Coordinates the incident statistics pipeline.

    Stages:
    - normalizing: raw export -> dispatch-ordered RawUnitRecords
    - grouping: records -> IncidentGroups in first-dispatch order
    - reconciling: groups -> TimelineMetrics (classification included)
    - aggregating: metrics -> StatsDocument
    """

    STAGES = [
        "normalizing",
        "grouping",
        "reconciling",
        "aggregating",
    ]

    INPUT_FORMATS = ("csv", "json")

    def __init__(
        self,
        rules: Optional[ClassificationRules] = None,
        zone: tzinfo = timezone.utc,
        min_interval_seconds: float = 2.0,
        date_format: Optional[str] = None,
    ):
        """Initialize the pipeline.

        Args:
            rules: Classification rules (built-in defaults if omitted)
            zone: Evaluation timezone for naive export timestamps
            min_interval_seconds: Bad-data threshold for timing deltas
            date_format: strptime format for export dates, inferred if omitted
        """
        self.rules = rules or ClassificationRules()
        self.zone = zone
        self.min_interval_seconds = min_interval_seconds
        self.date_format = date_format

        # Initialize services lazily
        self._normalizer = None
        self._grouper = None
        self._reconciler = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatsPipeline":
        """Build a pipeline from application settings.

        Raises:
            ConfigurationError: If the configured rules file is unusable
        """
        return cls(
            rules=settings.get_rules(),
            zone=settings.get_zone(),
            min_interval_seconds=settings.min_interval_seconds,
            date_format=settings.date_format,
        )

    @property
    def normalizer(self):
        """Get or create RecordNormalizer."""
        if self._normalizer is None:
            from incident_stats.services.normalizer import RecordNormalizer

            self._normalizer = RecordNormalizer(self.zone, self.date_format)
        return self._normalizer

    @property
    def grouper(self):
        """Get or create IncidentGrouper."""
        if self._grouper is None:
            from incident_stats.services.grouper import IncidentGrouper

            self._grouper = IncidentGrouper()
        return self._grouper

    @property
    def reconciler(self):
        """Get or create TimelineReconciler."""
        if self._reconciler is None:
            from incident_stats.services.classifier import IncidentClassifier
            from incident_stats.services.reconciler import TimelineReconciler

            self._reconciler = TimelineReconciler(
                IncidentClassifier(self.rules), self.min_interval_seconds
            )
        return self._reconciler

    def process(
        self,
        source: str | Path,
        input_format: str = "csv",
        options: Optional[ProcessingOptions] = None,
        callbacks: Optional[ProgressCallbacks] = None,
    ) -> ProcessingResult:
        """Run the complete pipeline over an export file.

        Args:
            source: Path to the CSV or JSON export
            input_format: "csv" or "json"
            options: Window and timestamp options
            callbacks: Progress callbacks for CLI display

        Returns:
            ProcessingResult; a failed result never carries a document
        """
        if input_format not in self.INPUT_FORMATS:
            return self._failed(
                "normalizing", ValueError(f"Unsupported input format: {input_format}"),
                callbacks or DefaultProgressCallbacks(), time.time(), [],
            )

        def load() -> list[RawUnitRecord]:
            if input_format == "json":
                return self.normalizer.read_json(source)
            return self.normalizer.read_csv(source)

        return self._run(load, options, callbacks)

    def process_records(
        self,
        records: list[RawUnitRecord],
        options: Optional[ProcessingOptions] = None,
        callbacks: Optional[ProgressCallbacks] = None,
    ) -> ProcessingResult:
        """Run the pipeline over records that are already normalized."""
        return self._run(lambda: self.normalizer.sort_records(records), options, callbacks)

    def _run(self, load, options, callbacks) -> ProcessingResult:
        options = options or ProcessingOptions()
        callbacks = callbacks or DefaultProgressCallbacks()
        start_time = time.time()
        completed: list[str] = []
        stage = self.STAGES[0]

        try:
            stage_start = time.time()
            callbacks.on_stage_start(stage)
            records = load()
            callbacks.on_stage_complete(stage, time.time() - stage_start)
            completed.append(stage)

            stage = "grouping"
            stage_start = time.time()
            callbacks.on_stage_start(stage)
            groups: list[IncidentGroup] = self.grouper.group(records)
            callbacks.on_stage_complete(stage, time.time() - stage_start)
            completed.append(stage)

            # Overlap detection needs the window
            stage = "reconciling"
            stage_start = time.time()
            callbacks.on_stage_start(stage)
            aggregator = StatsAggregator(
                day_range=options.day_range,
                start_date=options.start_date,
                stop_date=options.stop_date,
            )
            bounds = aggregator.window(groups)
            metrics: list[TimelineMetrics] = self.reconciler.reconcile(groups, bounds)
            callbacks.on_stage_complete(stage, time.time() - stage_start)
            completed.append(stage)

            stage = "aggregating"
            stage_start = time.time()
            callbacks.on_stage_start(stage)
            document = aggregator.aggregate(metrics, now=options.now)
            callbacks.on_stage_complete(stage, time.time() - stage_start)
            completed.append(stage)

        except IncidentStatsError as e:
            return self._failed(stage, e, callbacks, start_time, completed)

        return ProcessingResult(
            success=True,
            document=document,
            duration_seconds=time.time() - start_time,
            stages_completed=completed,
            errors=[],
            metrics={
                "record_count": len(records),
                "incident_count": len(groups),
                "in_window_count": document.incident_stats.num_incidents,
                "malformed_count": sum(1 for m in metrics if m.is_malformed),
                "diagnostic_count": document.parse_warnings,
            },
        )

    @staticmethod
    def _failed(
        stage: str,
        error: Exception,
        callbacks: ProgressCallbacks,
        start_time: float,
        completed: list[str],
    ) -> ProcessingResult:
        logger.error("%s failed: %s", stage, error)
        callbacks.on_error(stage, error)
        return ProcessingResult(
            success=False,
            document=None,
            duration_seconds=time.time() - start_time,
            stages_completed=completed,
            errors=[f"{stage}: {error}"],
        )
