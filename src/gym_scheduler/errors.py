"""
Error taxonomy shared by the booking engine and the HTTP layer.

Every error carries a stable ``code`` for clients, a human readable
``message`` and the HTTP status it maps to. Business-rule errors are raised
before any mutation happens.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for all expected failures."""

    code = "error"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.code.replace("_", " ")
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        return {"ok": False, "error": self.code, "message": self.message}


class NotFound(SchedulerError):
    code = "not_found"
    status_code = 404


class ValidationError(SchedulerError):
    code = "validation_error"
    status_code = 400


class CapacityExceeded(SchedulerError):
    code = "capacity_exceeded"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or "This class is at full capacity")


class DuplicateBooking(SchedulerError):
    code = "duplicate_booking"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or "User is already booked for this time slot")


class Conflict(SchedulerError):
    code = "conflict"
    status_code = 409


class Unauthorized(SchedulerError):
    code = "unauthorized"
    status_code = 401


class Forbidden(SchedulerError):
    code = "forbidden"
    status_code = 403


class TransientStoreFailure(SchedulerError):
    code = "store_failure"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or "The operation could not be completed, please retry")
