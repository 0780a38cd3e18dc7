"""
Rehearsal Scheduler

Finds rehearsal times for a band from its members' availability rules.

Layers, leaf first:
    - intervals.py: time-of-day intervals and HH:MM:SS parsing
    - rules.py: availability rules (recurring, specific date, exception)
    - resolver.py: one member's free intervals on one date
    - aggregator.py: per-date coverage timeline for the whole roster
    - search.py: qualifying windows and day ranking
    - engine.py: FindOptimalTimes request/response and the roster/rules source protocol
    - store.py, app.py: JSON file store and the FastAPI surface around the engine
"""

from .aggregator import CoverageTimeline, Segment, aggregate
from .engine import AvailabilitySource, OptimalTimesRequest, OptimalTimesResult, SnapshotSource, find_optimal_times
from .errors import ConflictError, InvalidRequest, NotFoundError, PermissionDenied, SchedulerError, ValidationError
from .intervals import Interval, intersect, overlaps, union
from .resolver import resolve
from .rules import AvailabilityRule, RuleKind
from .search import DayRecommendation, Window, find_day_windows, find_optimal_windows

__version__ = "1.0.0"

__all__ = [
    "AvailabilityRule",
    "AvailabilitySource",
    "ConflictError",
    "CoverageTimeline",
    "DayRecommendation",
    "Interval",
    "InvalidRequest",
    "NotFoundError",
    "OptimalTimesRequest",
    "OptimalTimesResult",
    "PermissionDenied",
    "RuleKind",
    "SchedulerError",
    "Segment",
    "SnapshotSource",
    "ValidationError",
    "Window",
    "aggregate",
    "find_day_windows",
    "find_optimal_times",
    "find_optimal_windows",
    "intersect",
    "overlaps",
    "resolve",
    "union",
]
