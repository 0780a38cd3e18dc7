import json
import os
import tempfile
import threading
import uuid
from datetime import date
from typing import Dict, List, Optional

from . import settings
from .engine import SnapshotSource
from .errors import ConflictError, InvalidRequest, NotFoundError, PermissionDenied, ValidationError
from .rules import AvailabilityRule, RuleKind

ROLES = ("admin", "member")


def _sort_key(rule: AvailabilityRule):
    # recurring first, then weekday, start time, date
    return (
        0 if rule.kind is RuleKind.RECURRING else 1,
        rule.day_of_week if rule.day_of_week is not None else 7,
        rule.start_time if rule.start_time is not None else -1,
        rule.specific_date or date.min,
    )


def _active(band: Dict) -> List[str]:
    return [m["userId"] for m in band["members"] if m.get("isActive", True)]


class JsonStore:
    """
    Bands, their members and availability rules in one JSON file.

    Layout: {"bands": {id: {"id", "ownerId", "members": [{"userId", "role", "isActive"}]}},
             "rules": {id: rule-as-dict}}
    """

    def __init__(self, path: str):
        self.path = path
        # reentrant: writers call _load while holding it
        self._lock = threading.RLock()

    # ---------- file io ----------
    def _load(self) -> Dict:
        with self._lock:
            if not os.path.exists(self.path):
                return {"bands": {}, "rules": {}}
            with open(self.path, "r") as f:
                data = json.load(f)
        data.setdefault("bands", {})
        data.setdefault("rules", {})
        return data

    def _save(self, data: Dict):
        # write beside the target and swap it in, so readers never see a half-written file
        folder = os.path.dirname(os.path.abspath(self.path))
        fd, tmp = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=folder)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    def _band(self, data: Dict, band_id: str) -> Dict:
        band = data["bands"].get(band_id)
        if band is None:
            raise NotFoundError(f"band {band_id} not found")
        return band

    def _member(self, band: Dict, user_id: str) -> Dict:
        for m in band["members"]:
            if m["userId"] == user_id:
                return m
        raise NotFoundError(f"member {user_id} not found in band {band['id']}")

    # ---------- bands ----------
    def create_band(self, band_id: str, owner_id: str) -> Dict:
        with self._lock:
            data = self._load()
            if band_id in data["bands"]:
                raise ConflictError(f"band {band_id} already exists")
            band = {"id": band_id, "ownerId": owner_id,
                    "members": [{"userId": owner_id, "role": "admin", "isActive": True}]}
            data["bands"][band_id] = band
            self._save(data)
            return band

    def add_member(self, band_id: str, user_id: str, role: str = "member") -> Dict:
        if role not in ROLES:
            raise ValidationError(f"role must be one of {', '.join(ROLES)}, got {role!r}", field="role")
        with self._lock:
            data = self._load()
            band = self._band(data, band_id)
            for m in band["members"]:
                if m["userId"] == user_id:
                    m.update({"role": role, "isActive": True})
                    break
            else:
                band["members"].append({"userId": user_id, "role": role, "isActive": True})
            self._save(data)
            return band

    def update_member(self, band_id: str, user_id: str, role: str) -> Dict:
        if role not in ROLES:
            raise ValidationError(f"role must be one of {', '.join(ROLES)}, got {role!r}", field="role")
        with self._lock:
            data = self._load()
            member = self._member(self._band(data, band_id), user_id)
            member["role"] = role
            self._save(data)
            return member

    def remove_member(self, band_id: str, user_id: str) -> Dict:
        """Deactivate a member. Their rules stay on file but no longer count."""
        with self._lock:
            data = self._load()
            band = self._band(data, band_id)
            if band.get("ownerId") == user_id:
                raise InvalidRequest("cannot remove the band owner")
            member = self._member(band, user_id)
            member["isActive"] = False
            self._save(data)
            return member

    def members(self, band_id: str) -> List[Dict]:
        return list(self._band(self._load(), band_id)["members"])

    def is_member(self, band_id: str, user_id: str) -> bool:
        return any(m["userId"] == user_id and m.get("isActive", True) for m in self.members(band_id))

    def is_admin(self, band_id: str, user_id: str) -> bool:
        band = self._band(self._load(), band_id)
        if band.get("ownerId") == user_id:
            return True
        return any(m["userId"] == user_id and m.get("role") == "admin" and m.get("isActive", True)
                   for m in band["members"])

    # ---------- AvailabilitySource ----------
    def get_group_roster(self, group_id: str) -> List[str]:
        return _active(self._band(self._load(), group_id))

    def get_availability_rules(self, participant_id: str, group_id: str) -> List[AvailabilityRule]:
        return sorted(
            (r for r in self._all_rules() if r.participant_id == participant_id and r.group_id == group_id),
            key=_sort_key,
        )

    def snapshot(self, band_id: str) -> SnapshotSource:
        """Roster and rules of one band from a single read of the file."""
        data = self._load()
        roster = _active(self._band(data, band_id))
        rules = [AvailabilityRule.from_payload(d) for d in data["rules"].values()
                 if d.get("groupId") == band_id and d.get("participantId") in roster]
        return SnapshotSource({band_id: roster}, sorted(rules, key=_sort_key))

    # ---------- rules ----------
    def _all_rules(self) -> List[AvailabilityRule]:
        return [AvailabilityRule.from_payload(d) for d in self._load()["rules"].values()]

    def band_rules(self, band_id: str) -> List[AvailabilityRule]:
        active = set(self.get_group_roster(band_id))
        rules = [r for r in self._all_rules() if r.group_id == band_id and r.participant_id in active]
        return sorted(rules, key=lambda r: (r.participant_id,) + _sort_key(r))

    def create_rule(self, user_id: str, band_id: str, payload: Dict) -> AvailabilityRule:
        rule = AvailabilityRule.from_payload(payload, rule_id=str(uuid.uuid4()),
                                             participant_id=user_id, group_id=band_id)
        with self._lock:
            data = self._load()
            data["rules"][rule.id] = rule.to_dict()
            self._save(data)
        return rule

    def update_rule(self, rule_id: str, user_id: str, changes: Dict) -> AvailabilityRule:
        with self._lock:
            data = self._load()
            current = data["rules"].get(rule_id)
            if current is None:
                raise NotFoundError(f"availability {rule_id} not found")
            if current["participantId"] != user_id:
                raise PermissionDenied("not authorized to update this availability")

            merged = dict(current)
            if "kind" not in changes and ("isRecurring" in changes or "isException" in changes):
                merged.pop("kind", None)
            for key in ("kind", "isRecurring", "isException", "dayOfWeek", "specificDate",
                        "startTime", "endTime", "priority", "notes"):
                if key in changes:
                    merged[key] = changes[key]

            rule = AvailabilityRule.from_payload(merged, rule_id=rule_id,
                                                 participant_id=current["participantId"],
                                                 group_id=current["groupId"])
            data["rules"][rule_id] = rule.to_dict()
            self._save(data)
            return rule

    def delete_rule(self, rule_id: str, user_id: str) -> None:
        with self._lock:
            data = self._load()
            current = data["rules"].get(rule_id)
            if current is None:
                raise NotFoundError(f"availability {rule_id} not found")
            if current["participantId"] != user_id:
                raise PermissionDenied("not authorized to delete this availability")
            del data["rules"][rule_id]
            self._save(data)


def load_store(path: Optional[str] = None) -> JsonStore:
    return JsonStore(path or settings.STORE_PATH)
