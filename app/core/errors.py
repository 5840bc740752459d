"""Error taxonomy shared by services and the HTTP layer."""
from typing import Optional


class EventPassError(Exception):
    """Base class for every expected, user-facing failure."""

    code = "EVENTPASS_ERROR"
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(EventPassError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class NotFound(EventPassError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class DuplicateIdentity(EventPassError):
    code = "DUPLICATE_IDENTITY"
    status_code = 409
    default_message = "A participant with this email already exists"


class AllocationError(EventPassError):
    code = "ALLOCATION_ERROR"
    status_code = 409
    default_message = "Registration number could not be allocated"


class InvalidCredential(EventPassError):
    code = "INVALID_CREDENTIAL"
    status_code = 400
    default_message = "Credential is invalid or has been tampered with"


class ExternalServiceError(EventPassError):
    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502
    default_message = "An external service failed"


class Blocked(EventPassError):
    code = "BLOCKED"
    status_code = 403
    default_message = "Participant is blocked from this event"


class LimitReached(EventPassError):
    code = "LIMIT_REACHED"
    status_code = 409
    default_message = "Registration limit reached"


class ScanConflict(EventPassError):
    code = "SCAN_CONFLICT"
    status_code = 409
    default_message = "Participant status changed during the scan, please scan again"


class ConcurrentUpdate(EventPassError):
    code = "CONCURRENT_UPDATE"
    status_code = 409
    default_message = "The record was changed concurrently, please retry"
