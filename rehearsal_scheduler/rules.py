"""
Availability rules.

A rule is one statement a participant makes about when they are free for a
group: every week on a weekday (recurring), once on a date (specific date), or
"on this date, only these hours" (exception). Exceptions replace everything
else for their date; an exception without hours is a blackout.
"""

import enum
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Optional

from dateutil import parser as dparse

from .errors import ValidationError
from .intervals import DAY_SECONDS, Interval, format_time_of_day, parse_time_of_day

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class RuleKind(str, enum.Enum):
    RECURRING = "recurring"
    SPECIFIC_DATE = "specific_date"
    EXCEPTION = "exception"


def weekday_index(d: date) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return d.isoweekday() % 7


@dataclass(frozen=True)
class AvailabilityRule:
    id: str
    participant_id: str
    group_id: str
    kind: RuleKind
    start_time: Optional[int] = None  # seconds since midnight
    end_time: Optional[int] = None
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    priority: int = 1
    notes: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def _fail(self, msg: str, field: str):
        raise ValidationError(f"rule {self.id}: {msg}", field=field, rule_id=self.id)

    def validate(self):
        if not self.id:
            self._fail("missing id", "id")
        if not self.participant_id:
            self._fail("missing participant id", "participantId")
        if not self.group_id:
            self._fail("missing group id", "groupId")
        if not isinstance(self.kind, RuleKind):
            self._fail(f"unknown kind {self.kind!r}", "kind")
        if isinstance(self.priority, bool) or not isinstance(self.priority, int):
            self._fail(f"priority must be an integer, got {self.priority!r}", "priority")

        if self.kind is RuleKind.RECURRING:
            if self.day_of_week is None:
                self._fail("recurring rules need a day of week", "dayOfWeek")
            if isinstance(self.day_of_week, bool) or not isinstance(self.day_of_week, int) \
                    or not 0 <= self.day_of_week <= 6:
                self._fail(f"day of week must be 0-6 (Sunday=0), got {self.day_of_week!r}", "dayOfWeek")
            if self.specific_date is not None:
                self._fail("recurring rules must not carry a specific date", "specificDate")
        else:
            if self.specific_date is None:
                self._fail(f"{self.kind.value} rules need a specific date", "specificDate")
            if not isinstance(self.specific_date, date):
                self._fail(f"specific date must be a date, got {self.specific_date!r}", "specificDate")
            if self.day_of_week is not None:
                self._fail(f"{self.kind.value} rules must not carry a day of week", "dayOfWeek")

        has_start = self.start_time is not None
        has_end = self.end_time is not None
        if not has_start and not has_end and self.kind is RuleKind.EXCEPTION:
            return  # blackout
        if not has_start:
            self._fail("missing start time", "startTime")
        if not has_end:
            self._fail("missing end time", "endTime")
        for name, value in (("startTime", self.start_time), ("endTime", self.end_time)):
            if isinstance(value, bool) or not isinstance(value, int):
                self._fail(f"{name} must be seconds since midnight, got {value!r}", name)
        if not 0 <= self.start_time < self.end_time <= DAY_SECONDS:
            self._fail(
                f"start time must be before end time ({self._fmt(self.start_time)} - {self._fmt(self.end_time)})",
                "endTime",
            )

    @staticmethod
    def _fmt(seconds) -> str:
        try:
            return format_time_of_day(seconds)
        except (TypeError, ValueError):
            return repr(seconds)

    @property
    def is_blackout(self) -> bool:
        return self.kind is RuleKind.EXCEPTION and self.start_time is None

    @property
    def interval(self) -> Optional[Interval]:
        if self.start_time is None:
            return None
        return Interval(self.start_time, self.end_time)

    def applies_on(self, d: date) -> bool:
        if self.kind is RuleKind.RECURRING:
            return self.day_of_week == weekday_index(d)
        return self.specific_date == d

    def with_changes(self, **changes) -> "AvailabilityRule":
        """Copy with fields replaced; the copy is validated like a new rule."""
        return replace(self, **changes)

    @classmethod
    def from_payload(cls, payload: Dict, rule_id: Optional[str] = None,
                     participant_id: Optional[str] = None, group_id: Optional[str] = None) -> "AvailabilityRule":
        """
        Build a rule from a loosely-typed JSON body.

        Accepts camelCase keys (``startTime``, ``dayOfWeek`` ...) and the
        ``isRecurring`` / ``isException`` flags older clients send instead of
        ``kind``. Explicit keyword arguments win over the payload.
        """
        rid = rule_id or payload.get("id")
        kind = _parse_kind(payload, rid)

        start_raw = payload.get("startTime")
        end_raw = payload.get("endTime")
        spec_raw = payload.get("specificDate")
        dow = payload.get("dayOfWeek")
        priority = payload.get("priority", 1)

        return cls(
            id=rid,
            participant_id=participant_id or payload.get("participantId") or payload.get("userId"),
            group_id=group_id or payload.get("groupId") or payload.get("bandId"),
            kind=kind,
            start_time=_parse_time_field(start_raw, "startTime", rid),
            end_time=_parse_time_field(end_raw, "endTime", rid),
            day_of_week=dow if kind is RuleKind.RECURRING else None,
            specific_date=_parse_date_field(spec_raw, rid) if kind is not RuleKind.RECURRING else None,
            priority=1 if priority is None else priority,
            notes=payload.get("notes"),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "participantId": self.participant_id,
            "groupId": self.group_id,
            "kind": self.kind.value,
            "dayOfWeek": self.day_of_week,
            "specificDate": self.specific_date.isoformat() if self.specific_date else None,
            "startTime": format_time_of_day(self.start_time) if self.start_time is not None else None,
            "endTime": format_time_of_day(self.end_time) if self.end_time is not None else None,
            "priority": self.priority,
            "notes": self.notes,
        }


_KIND_ALIASES = {
    "recurring": RuleKind.RECURRING,
    "specificdate": RuleKind.SPECIFIC_DATE,
    "exception": RuleKind.EXCEPTION,
}


def _parse_kind(payload: Dict, rule_id) -> RuleKind:
    raw = payload.get("kind")
    if raw is not None:
        key = str(raw).replace("_", "").replace("-", "").lower()
        if key not in _KIND_ALIASES:
            raise ValidationError(f"rule {rule_id}: unknown kind {raw!r}", field="kind", rule_id=rule_id)
        return _KIND_ALIASES[key]
    if payload.get("isException"):
        return RuleKind.EXCEPTION
    if payload.get("isRecurring"):
        return RuleKind.RECURRING
    if payload.get("specificDate"):
        return RuleKind.SPECIFIC_DATE
    if payload.get("dayOfWeek") is not None:
        return RuleKind.RECURRING
    raise ValidationError(
        f"rule {rule_id}: either a recurring pattern or a specific date must be provided",
        field="kind", rule_id=rule_id,
    )


def _parse_time_field(value, field: str, rule_id) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return parse_time_of_day(value)
    except ValidationError as e:
        raise ValidationError(f"rule {rule_id}: {e.detail}", field=field, rule_id=rule_id) from e


def _parse_date_field(value, rule_id) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return dparse.isoparse(str(value)).date()
    except ValueError as e:
        raise ValidationError(
            f"rule {rule_id}: invalid specific date {value!r}", field="specificDate", rule_id=rule_id
        ) from e
