"""
Scheduling error taxonomy.

Services raise these; the error handler in ``app.middleware.error_handler``
turns them into the JSON envelope with the matching HTTP status.
"""
from typing import Any, Dict, Optional


class SchedulingError(Exception):
    status_code = 400
    code = "SCHEDULING_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class ValidationError(SchedulingError):
    code = "VALIDATION_ERROR"


class InvalidDateFormat(ValidationError):
    code = "INVALID_DATE_FORMAT"


class ScheduleConflict(SchedulingError):
    code = "SCHEDULE_CONFLICT"


class ConflictingSchedule(SchedulingError):
    """Claimant already works an overlapping approved shift."""
    code = "CONFLICTING_SCHEDULE"


class CapacityExceeded(SchedulingError):
    code = "CAPACITY_EXCEEDED"


class InvalidStateTransition(SchedulingError):
    code = "INVALID_STATE_TRANSITION"


class AlreadyProcessed(SchedulingError):
    code = "ALREADY_PROCESSED"


class Expired(SchedulingError):
    code = "EXPIRED"


class NotFound(SchedulingError):
    status_code = 404
    code = "NOT_FOUND"


class Forbidden(SchedulingError):
    status_code = 403
    code = "FORBIDDEN"


class InternalError(SchedulingError):
    status_code = 500
    code = "INTERNAL_ERROR"
