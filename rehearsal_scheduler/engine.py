"""
FindOptimalTimes: the entry point the HTTP layer (or any other caller) uses.

The caller hands over a request and something that can answer two read-only
questions (who is on the roster, what rules does a member have). Everything
is fetched up front; the per-date work afterwards is pure and runs on a
thread pool.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import pendulum
from dateutil import parser as dparse

from . import settings
from .aggregator import aggregate
from .errors import InvalidRequest, NotFoundError, ValidationError
from .rules import AvailabilityRule
from .search import DayRecommendation, evaluate_day, rank_days

logger = logging.getLogger(__name__)


class AvailabilitySource(Protocol):
    def get_availability_rules(self, participant_id: str, group_id: str) -> List[AvailabilityRule]:
        ...

    def get_group_roster(self, group_id: str) -> List[str]:
        ...


class SnapshotSource:
    """In-memory AvailabilitySource over a fixed roster and rule list."""

    def __init__(self, rosters: Mapping[str, Sequence[str]], rules: Iterable[AvailabilityRule] = ()):
        self._rosters = {gid: list(members) for gid, members in rosters.items()}
        self._rules = list(rules)

    def get_group_roster(self, group_id: str) -> List[str]:
        if group_id not in self._rosters:
            raise NotFoundError(f"group {group_id} not found")
        return list(self._rosters[group_id])

    def get_availability_rules(self, participant_id: str, group_id: str) -> List[AvailabilityRule]:
        return [r for r in self._rules if r.participant_id == participant_id and r.group_id == group_id]


def _to_date(value, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return date(value.year, value.month, value.day)
    try:
        return dparse.isoparse(str(value)).date()
    except ValueError as e:
        raise ValidationError(f"invalid date {value!r} for {field_name}", field=field_name) from e


def _to_int(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer, got {value!r}", field=field_name)
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be an integer, got {value!r}", field=field_name) from e
    # 90.0 and "90" are fine, 90.9 is not rounded away
    if not number.is_integer():
        raise ValidationError(f"{field_name} must be a whole number, got {value!r}", field=field_name)
    return int(number)


@dataclass(frozen=True)
class OptimalTimesRequest:
    group_id: str
    duration_minutes: int = settings.DEFAULT_DURATION_MIN
    required_participant_ids: Tuple[str, ...] = ()
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    top_n: int = settings.DEFAULT_TOP_N

    def __post_init__(self):
        if not self.group_id:
            raise ValidationError("group id is required", field="groupId")
        if self.duration_minutes <= 0:
            raise InvalidRequest(f"duration must be positive, got {self.duration_minutes}")
        if self.top_n <= 0:
            raise InvalidRequest(f"topN must be positive, got {self.top_n}")
        if (self.start_date is None) != (self.end_date is None):
            raise InvalidRequest("a date range needs both startDate and endDate")
        if self.start_date is not None:
            if self.end_date < self.start_date:
                raise InvalidRequest(f"empty date range: {self.start_date} is after {self.end_date}")
            span = (self.end_date - self.start_date).days + 1
            if span > settings.MAX_RANGE_DAYS:
                raise InvalidRequest(f"date range of {span} days exceeds the limit of {settings.MAX_RANGE_DAYS}")

    @classmethod
    def from_payload(cls, group_id: str, body: Optional[Dict] = None) -> "OptimalTimesRequest":
        """
        Body can include:
          - durationMinutes (or duration / duration_min), default 120
          - requiredParticipantIds (or requiredMembers): list of member ids
          - startDate / endDate: ISO dates, inclusive; default is the coming week
          - topN, default 3
        """
        body = body or {}
        duration = body.get("durationMinutes", body.get("duration", body.get("duration_min")))
        top_n = body.get("topN", body.get("top_n"))

        required = body.get("requiredParticipantIds", body.get("requiredMembers")) or []
        if isinstance(required, str) or not isinstance(required, (list, tuple)):
            raise ValidationError("required participants must be a list of ids", field="requiredParticipantIds")
        if not all(isinstance(r, str) and r for r in required):
            raise ValidationError("required participant ids must be non-empty strings",
                                  field="requiredParticipantIds")

        return cls(
            group_id=group_id,
            duration_minutes=settings.DEFAULT_DURATION_MIN if duration is None else _to_int(duration, "durationMinutes"),
            required_participant_ids=tuple(dict.fromkeys(required)),
            start_date=_to_date(body.get("startDate"), "startDate"),
            end_date=_to_date(body.get("endDate"), "endDate"),
            top_n=settings.DEFAULT_TOP_N if top_n is None else _to_int(top_n, "topN"),
        )

    def candidate_dates(self, today: Optional[date] = None) -> List[date]:
        """The explicit range, or the next DEFAULT_RANGE_DAYS days starting tomorrow."""
        if self.start_date is not None:
            first, days = self.start_date, (self.end_date - self.start_date).days + 1
        else:
            if today is None:
                now = pendulum.now(settings.LOCAL_TZ)
                today = date(now.year, now.month, now.day)
            first, days = today + timedelta(days=1), settings.DEFAULT_RANGE_DAYS
        return [first + timedelta(days=i) for i in range(days)]


@dataclass
class OptimalTimesResult:
    group_id: str
    duration_minutes: int
    required_participant_ids: Tuple[str, ...]
    # best first, limited to top_n
    recommendations: List[DayRecommendation] = field(default_factory=list)
    # every candidate date, ranked
    days: List[DayRecommendation] = field(default_factory=list)


def find_optimal_times(request: OptimalTimesRequest, source: AvailabilitySource,
                       today: Optional[date] = None,
                       max_workers: Optional[int] = None) -> OptimalTimesResult:
    roster = list(dict.fromkeys(source.get_group_roster(request.group_id)))
    if not roster:
        raise InvalidRequest(f"group {request.group_id} has no active members")

    missing = [pid for pid in request.required_participant_ids if pid not in roster]
    if missing:
        raise NotFoundError(f"required participants not in group {request.group_id}: {', '.join(missing)}")

    rules_by_participant = {pid: list(source.get_availability_rules(pid, request.group_id)) for pid in roster}
    dates = request.candidate_dates(today)

    logger.info("find_optimal_times: group=%s members=%d rules=%d dates=%s..%s duration=%d required=%s",
                request.group_id, len(roster), sum(len(v) for v in rules_by_participant.values()),
                dates[0], dates[-1], request.duration_minutes, list(request.required_participant_ids))

    def _evaluate(d: date) -> DayRecommendation:
        timeline = aggregate(d, roster, rules_by_participant, group_id=request.group_id)
        return evaluate_day(timeline, request.duration_minutes, request.required_participant_ids, len(roster))

    workers = max(1, min(max_workers or settings.MAX_WORKERS, len(dates)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        days = rank_days(pool.map(_evaluate, dates))

    result = OptimalTimesResult(
        group_id=request.group_id,
        duration_minutes=request.duration_minutes,
        required_participant_ids=request.required_participant_ids,
        recommendations=days[:request.top_n],
        days=days,
    )
    logger.info("find_optimal_times: group=%s best=%s", request.group_id,
                [(d.date.isoformat(), round(d.availability_percentage, 1)) for d in result.recommendations])
    return result
