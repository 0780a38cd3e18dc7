import itertools
from datetime import date

import pytest

from rehearsal_scheduler.intervals import parse_time_of_day
from rehearsal_scheduler.rules import AvailabilityRule, RuleKind

GROUP = "band-1"
MONDAY = date(2024, 6, 10)  # Monday, weekday index 1
MON = 1

_ids = itertools.count(1)


def _rid():
    return f"rule-{next(_ids)}"


def t(hhmm: str) -> int:
    return parse_time_of_day(hhmm)


def recurring(pid, dow, start, end, group=GROUP, **kw):
    return AvailabilityRule(
        id=kw.pop("id", _rid()), participant_id=pid, group_id=group, kind=RuleKind.RECURRING,
        day_of_week=dow, start_time=t(start), end_time=t(end), **kw,
    )


def specific(pid, day, start, end, group=GROUP, **kw):
    return AvailabilityRule(
        id=kw.pop("id", _rid()), participant_id=pid, group_id=group, kind=RuleKind.SPECIFIC_DATE,
        specific_date=day, start_time=t(start), end_time=t(end), **kw,
    )


def exception(pid, day, start=None, end=None, group=GROUP, **kw):
    return AvailabilityRule(
        id=kw.pop("id", _rid()), participant_id=pid, group_id=group, kind=RuleKind.EXCEPTION,
        specific_date=day,
        start_time=t(start) if start else None,
        end_time=t(end) if end else None,
        **kw,
    )


@pytest.fixture
def monday_rules():
    """A free Mon 18:00-21:00, B free Mon 19:00-22:00."""
    return {
        "A": [recurring("A", MON, "18:00", "21:00")],
        "B": [recurring("B", MON, "19:00", "22:00")],
    }
