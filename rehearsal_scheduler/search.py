"""
Optimal-window search over coverage timelines.

A window is a maximal stretch of a day in which the same (counted) group of
participants is free and which lasts at least the requested duration. With a
required set, only required participants are counted and a stretch qualifies
only while all of them are present.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .aggregator import CoverageTimeline
from .errors import InvalidRequest
from .intervals import format_time_of_day
from .rules import WEEKDAY_NAMES, weekday_index

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 3


@dataclass(frozen=True)
class Window:
    start: int
    end: int
    available_count: int
    participants: Tuple[str, ...] = ()

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start) / 60.0

    def __str__(self) -> str:
        return f"{format_time_of_day(self.start)}-{format_time_of_day(self.end)} x{self.available_count}"


@dataclass
class DayRecommendation:
    date: date
    availability_percentage: float
    available_count: int
    total_count: int
    windows: List[Window] = field(default_factory=list)
    # participants free long enough on their own, whether or not they share a window
    free_count: int = 0

    @property
    def day_of_week(self) -> int:
        return weekday_index(self.date)

    @property
    def day_name(self) -> str:
        return WEEKDAY_NAMES[self.day_of_week]


def _check_duration(duration_minutes) -> None:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, (int, float)) \
            or duration_minutes <= 0:
        raise InvalidRequest(f"duration must be a positive number of minutes, got {duration_minutes!r}")


def find_day_windows(timeline: CoverageTimeline, duration_minutes,
                     required: Iterable[str] = ()) -> List[Window]:
    """Qualifying windows of one day, sorted by start time."""
    _check_duration(duration_minutes)
    required_set = frozenset(required)
    min_seconds = duration_minutes * 60

    runs: List[List] = []  # [start, end, counted]
    for seg in timeline.segments:
        counted = seg.available & required_set if required_set else seg.available
        if required_set:
            ok = counted == required_set
        else:
            ok = len(counted) > 0
        if not ok:
            continue
        if runs and runs[-1][1] == seg.start and runs[-1][2] == counted:
            runs[-1][1] = seg.end
        else:
            runs.append([seg.start, seg.end, counted])

    windows = [
        Window(start=s, end=e, available_count=len(c), participants=tuple(sorted(c)))
        for s, e, c in runs
        if e - s >= min_seconds
    ]
    windows.sort(key=lambda w: (w.start, w.end))
    return windows


def evaluate_day(timeline: CoverageTimeline, duration_minutes, required: Iterable[str],
                 total_participants: int) -> DayRecommendation:
    """Windows plus coverage figures for one day. Days without windows report 0%."""
    if total_participants <= 0:
        raise InvalidRequest("cannot rank days for an empty roster")
    windows = find_day_windows(timeline, duration_minutes, required)

    covered: set = set()
    for w in windows:
        covered.update(w.participants)
    pct = len(covered) / total_participants * 100

    logger.debug("search: %s windows=%s available=%d/%d",
                 timeline.date, [str(w) for w in windows], len(covered), total_participants)
    return DayRecommendation(
        date=timeline.date,
        availability_percentage=pct,
        available_count=len(covered),
        total_count=total_participants,
        windows=windows,
        free_count=len(qualifying_participants(timeline, duration_minutes)),
    )


def rank_days(days: Iterable[DayRecommendation]) -> List[DayRecommendation]:
    """Best coverage first; ties go to the earlier date, then to the day with more windows."""
    return sorted(days, key=lambda d: (-d.availability_percentage, d.date, -len(d.windows)))


def find_optimal_windows(timelines: Sequence[CoverageTimeline], duration_minutes,
                         required: Iterable[str] = (), total_participants: Optional[int] = None,
                         top_n: Optional[int] = DEFAULT_TOP_N,
                         rank_all: bool = False) -> List[DayRecommendation]:
    """
    Evaluate every timeline and return the ranked days.

    total_participants defaults to the size of the first timeline's roster.
    With rank_all the full ranking is returned (days without windows included),
    otherwise only the best ``top_n``.
    """
    _check_duration(duration_minutes)
    required = frozenset(required)
    if total_participants is None:
        total_participants = len(timelines[0].participants) if timelines else 0
    if total_participants <= 0:
        raise InvalidRequest("roster is empty: no participants to schedule")
    if not rank_all and (top_n is None or top_n <= 0):
        raise InvalidRequest(f"top_n must be a positive integer, got {top_n!r}")

    ranked = rank_days(evaluate_day(t, duration_minutes, required, total_participants) for t in timelines)
    return ranked if rank_all else ranked[:top_n]


def qualifying_participants(timeline: CoverageTimeline, duration_minutes) -> FrozenSet[str]:
    """Participants individually free for at least ``duration_minutes`` in one stretch that day."""
    _check_duration(duration_minutes)
    min_seconds = duration_minutes * 60
    return frozenset(
        pid for pid, ivs in timeline.intervals.items()
        if any(iv.duration_seconds >= min_seconds for iv in ivs)
    )
