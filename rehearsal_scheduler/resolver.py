import logging
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import NotFoundError
from .intervals import Interval, union
from .rules import AvailabilityRule, RuleKind

logger = logging.getLogger(__name__)


def resolve(participant_id: str, day: date, rules: Iterable[AvailabilityRule],
            group_id: Optional[str] = None) -> List[Interval]:
    """
    Effective free intervals of one participant on one date.

    - rules owned by someone else (or another group, when group_id is given) are ignored
    - every rule of the participant is validated; a broken rule raises ValidationError
    - exceptions on the date replace recurring and specific-date rules entirely
    - otherwise recurring (by weekday) and specific-date rules are unioned
    - no matching rule means no availability
    """
    exceptions: List[AvailabilityRule] = []
    additive: List[AvailabilityRule] = []

    for rule in rules:
        if rule.participant_id != participant_id:
            continue
        if group_id is not None and rule.group_id != group_id:
            continue
        rule.validate()
        if not rule.applies_on(day):
            continue
        if rule.kind is RuleKind.EXCEPTION:
            exceptions.append(rule)
        else:
            additive.append(rule)

    if exceptions:
        # priority is carried on the rules but same-tier rules are purely additive
        out = union(r.interval for r in exceptions if not r.is_blackout)
        logger.debug("resolve: %s on %s overridden by %d exception(s) -> %s",
                      participant_id, day, len(exceptions), [str(i) for i in out])
        return out

    return union(r.interval for r in additive)


def resolve_many(day: date, participant_ids: Iterable[str],
                 rules_by_participant: Mapping[str, Iterable[AvailabilityRule]],
                 group_id: Optional[str] = None) -> Dict[str, List[Interval]]:
    """Resolve a whole roster for one date. Unknown participants raise NotFoundError."""
    out: Dict[str, List[Interval]] = {}
    for pid in participant_ids:
        if pid in out:
            continue
        if pid not in rules_by_participant:
            raise NotFoundError(f"participant {pid} is not in the availability snapshot")
        out[pid] = resolve(pid, day, rules_by_participant[pid], group_id=group_id)
    return out
