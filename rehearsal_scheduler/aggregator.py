"""
Coverage timelines.

For one date, sweep every participant's resolved intervals together and cut
the day at each boundary. Each resulting segment carries the set of
participants free for all of it.
"""

import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .intervals import Interval, format_time_of_day
from .resolver import resolve_many
from .rules import AvailabilityRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    start: int
    end: int
    available: FrozenSet[str]

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def count(self) -> int:
        return len(self.available)

    def __str__(self) -> str:
        who = ",".join(sorted(self.available)) or "-"
        return f"{format_time_of_day(self.start)}-{format_time_of_day(self.end)} [{who}]"


@dataclass
class CoverageTimeline:
    date: date
    participants: Tuple[str, ...]
    segments: List[Segment] = field(default_factory=list)
    # participant -> resolved intervals, kept for callers that want the raw view
    intervals: Dict[str, List[Interval]] = field(default_factory=dict)

    @property
    def breakpoints(self) -> List[int]:
        if not self.segments:
            return []
        return [s.start for s in self.segments] + [self.segments[-1].end]

    def coverage_at(self, seconds: int) -> FrozenSet[str]:
        """Participants free at the given instant (seconds since midnight)."""
        starts = [s.start for s in self.segments]
        i = bisect_right(starts, seconds) - 1
        if i < 0:
            return frozenset()
        seg = self.segments[i]
        return seg.available if seg.start <= seconds < seg.end else frozenset()

    def count_at(self, seconds: int) -> int:
        return len(self.coverage_at(seconds))


def build_timeline(day: date, participant_ids: Iterable[str],
                   intervals_by_participant: Mapping[str, List[Interval]]) -> CoverageTimeline:
    """Sweep already-resolved intervals into a run-length encoded timeline."""
    roster = tuple(dict.fromkeys(participant_ids))

    events: List[Tuple[int, int, str]] = []
    for pid in roster:
        for iv in intervals_by_participant.get(pid, ()):
            # ends sort before starts at the same instant
            events.append((iv.start, 1, pid))
            events.append((iv.end, 0, pid))
    events.sort()

    segments: List[Segment] = []
    active: set = set()
    i = 0
    while i < len(events):
        t = events[i][0]
        while i < len(events) and events[i][0] == t:
            _, is_start, pid = events[i]
            if is_start:
                active.add(pid)
            else:
                active.discard(pid)
            i += 1
        if i == len(events):
            break
        nxt = events[i][0]
        cur = frozenset(active)
        if segments and segments[-1].end == t and segments[-1].available == cur:
            segments[-1] = Segment(segments[-1].start, nxt, cur)
        else:
            segments.append(Segment(t, nxt, cur))

    timeline = CoverageTimeline(
        date=day,
        participants=roster,
        segments=segments,
        intervals={pid: list(intervals_by_participant.get(pid, [])) for pid in roster},
    )
    logger.debug("aggregate: %s participants=%d segments=%d", day, len(roster), len(segments))
    return timeline


def aggregate(day: date, participant_ids: Iterable[str],
              rules_by_participant: Mapping[str, Iterable[AvailabilityRule]],
              group_id: Optional[str] = None) -> CoverageTimeline:
    """Resolve every participant on ``day`` and build the coverage timeline."""
    roster = list(dict.fromkeys(participant_ids))
    resolved = resolve_many(day, roster, rules_by_participant, group_id=group_id)
    return build_timeline(day, roster, resolved)
