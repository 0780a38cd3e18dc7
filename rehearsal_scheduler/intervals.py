"""
Time-of-day intervals.

Every interval lives inside a single calendar day and is stored as whole
seconds since midnight, half-open: ``[start, end)``. ``24:00:00`` (86400) is a
valid end so that availability can run up to midnight.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from dateutil.parser import isoparser

from .errors import ValidationError

DAY_SECONDS = 24 * 60 * 60

_isoparser = isoparser()


@dataclass(frozen=True, order=True)
class Interval:
    start: int
    end: int

    def __post_init__(self):
        if not (0 <= self.start < self.end <= DAY_SECONDS):
            raise ValidationError(
                f"invalid interval {self.start}-{self.end}: need 0 <= start < end <= {DAY_SECONDS}",
                field="interval",
            )

    @classmethod
    def parse(cls, start: str, end: str) -> "Interval":
        return cls(parse_time_of_day(start), parse_time_of_day(end))

    @property
    def duration_seconds(self) -> int:
        return self.end - self.start

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60.0

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def intersect(self, other: "Interval") -> Optional["Interval"]:
        return intersect(self, other)

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def to_dict(self) -> dict:
        return {"start": format_time_of_day(self.start), "end": format_time_of_day(self.end)}

    def __str__(self) -> str:
        return f"{format_time_of_day(self.start)}-{format_time_of_day(self.end)}"


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def intersect(a: Interval, b: Interval) -> Optional[Interval]:
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if start >= end:
        return None
    return Interval(start, end)


def union(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Merge intervals into a sorted list of disjoint intervals.

    Touching intervals merge too: being free 09:00-10:00 and 10:00-11:00 is
    being free 09:00-11:00.
    """
    ivs = sorted(intervals)
    out: List[List[int]] = []
    for iv in ivs:
        if not out or iv.start > out[-1][1]:
            out.append([iv.start, iv.end])
        else:
            out[-1][1] = max(out[-1][1], iv.end)
    return [Interval(s, e) for s, e in out]


def parse_time_of_day(value) -> int:
    """
    Parse ``HH:MM`` / ``HH:MM:SS`` (or a ``datetime.time``) into seconds since midnight.

    ``24:00`` and ``24:00:00`` mean end of day.
    """
    if hasattr(value, "hour") and hasattr(value, "minute"):
        return value.hour * 3600 + value.minute * 60 + getattr(value, "second", 0)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"expected a HH:MM:SS time string, got {value!r}", field="time")
    text = value.strip()
    if text in ("24:00", "24:00:00"):
        return DAY_SECONDS
    try:
        t = _isoparser.parse_isotime(text)
    except ValueError as e:
        raise ValidationError(f"invalid time of day {value!r}: {e}", field="time") from e
    if t.tzinfo is not None:
        raise ValidationError(f"time of day {value!r} must not carry an offset", field="time")
    return t.hour * 3600 + t.minute * 60 + t.second


def format_time_of_day(seconds: int) -> str:
    if not 0 <= seconds <= DAY_SECONDS:
        raise ValueError(f"seconds out of range: {seconds}")
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
