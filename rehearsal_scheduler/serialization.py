"""JSON shapes exchanged with the HTTP layer. Times are HH:MM:SS, dates ISO."""

import json
from typing import Dict, List

from dateutil import parser as dparse

from .engine import OptimalTimesResult
from .errors import ValidationError
from .intervals import format_time_of_day, parse_time_of_day
from .search import DayRecommendation, Window


def window_to_dict(w: Window) -> Dict:
    return {
        "start": format_time_of_day(w.start),
        "end": format_time_of_day(w.end),
        "availableCount": w.available_count,
        "participants": list(w.participants),
    }


def window_from_dict(d: Dict) -> Window:
    return Window(
        start=parse_time_of_day(d["start"]),
        end=parse_time_of_day(d["end"]),
        available_count=int(d["availableCount"]),
        participants=tuple(d.get("participants") or ()),
    )


def recommendation_to_dict(rec: DayRecommendation) -> Dict:
    return {
        "date": rec.date.isoformat(),
        "dayOfWeek": rec.day_of_week,
        "dayName": rec.day_name,
        "availabilityPercentage": rec.availability_percentage,
        "availableCount": rec.available_count,
        "totalCount": rec.total_count,
        "freeCount": rec.free_count,
        "windows": [window_to_dict(w) for w in rec.windows],
    }


def recommendation_from_dict(d: Dict) -> DayRecommendation:
    try:
        return DayRecommendation(
            date=dparse.isoparse(d["date"]).date(),
            availability_percentage=float(d["availabilityPercentage"]),
            available_count=int(d["availableCount"]),
            total_count=int(d["totalCount"]),
            windows=[window_from_dict(w) for w in d.get("windows", [])],
            free_count=int(d.get("freeCount", 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"malformed recommendation: {e}", field="recommendations") from e


def result_to_dict(result: OptimalTimesResult) -> Dict:
    return {
        "groupId": result.group_id,
        "durationMinutes": result.duration_minutes,
        "requiredParticipantIds": list(result.required_participant_ids),
        "recommendations": [recommendation_to_dict(r) for r in result.recommendations],
        "days": [recommendation_to_dict(r) for r in result.days],
    }


def recommendations_to_json(recs: List[DayRecommendation]) -> str:
    return json.dumps({"recommendations": [recommendation_to_dict(r) for r in recs]})


def recommendations_from_json(text: str) -> List[DayRecommendation]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"invalid JSON: {e}", field="recommendations") from e
    return [recommendation_from_dict(r) for r in data.get("recommendations", [])]
