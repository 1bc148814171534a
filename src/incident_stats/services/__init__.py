"""Services for the Incident Statistics Engine.

Components:
- RecordNormalizer: Parse CSV/JSON exports into unit records
- IncidentGrouper: Group records into incidents in dispatch order
- IncidentClassifier: Region and incident-type classification
- TimelineReconciler: Per-incident timers, personnel, apparatus, overlaps
- StatsAggregator: Reduce metrics into the stats document
- StatsPipeline: Coordinate the full run
"""

from incident_stats.services.normalizer import RecordNormalizer
from incident_stats.services.grouper import IncidentGrouper
from incident_stats.services.classifier import IncidentClassifier
from incident_stats.services.reconciler import TimelineReconciler
from incident_stats.services.aggregator import StatsAggregator
from incident_stats.services.pipeline import StatsPipeline

__all__ = [
    "RecordNormalizer",
    "IncidentGrouper",
    "IncidentClassifier",
    "TimelineReconciler",
    "StatsAggregator",
    "StatsPipeline",
]
