"""Errors raised by the scheduler and their JSON shape."""

from typing import Dict, Optional


class SchedulerError(Exception):
    """Base class for every error the scheduler raises on purpose.

    Errors are deterministic functions of the input; none of them is worth
    retrying. The HTTP layer turns them into JSON bodies via ``to_dict``.
    """

    code = "scheduler_error"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def extra(self) -> Dict:
        return {}

    def to_dict(self) -> Dict:
        out = {"error": self.code, "detail": self.detail}
        out.update({k: v for k, v in self.extra().items() if v is not None})
        return out


class ValidationError(SchedulerError):
    """A malformed rule or request field."""

    code = "validation_error"
    status_code = 400

    def __init__(self, detail: str, field: Optional[str] = None, rule_id: Optional[str] = None):
        super().__init__(detail)
        self.field = field
        self.rule_id = rule_id

    def extra(self) -> Dict:
        return {"field": self.field, "ruleId": self.rule_id}


class InvalidRequest(SchedulerError):
    code = "invalid_request"
    status_code = 400


class NotFoundError(SchedulerError):
    code = "not_found"
    status_code = 404


class PermissionDenied(SchedulerError):
    code = "forbidden"
    status_code = 403


class ConflictError(SchedulerError):
    code = "conflict"
    status_code = 409
