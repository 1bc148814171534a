"""Utility functions for the Incident Statistics Engine."""

from incident_stats.utils.time_utils import (
    NIGHTTIME_HOURS,
    add_days,
    format_duration,
    is_nighttime,
    iter_days,
    seconds_between,
    valid_interval,
    whole,
)

__all__ = [
    "NIGHTTIME_HOURS",
    "add_days",
    "format_duration",
    "is_nighttime",
    "iter_days",
    "seconds_between",
    "valid_interval",
    "whole",
]
