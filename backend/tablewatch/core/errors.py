"""
Domain errors and their mapping to HTTP responses.
Routes stay thin: services raise these, routes call error_to_http().
"""
from __future__ import annotations

from fastapi import HTTPException

# HTTP status codes for known error categories
STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500
STATUS_SERVICE_UNAVAILABLE = 503  # database or upstream down


class TablewatchError(Exception):
    """Base for errors surfaced to callers of the public entry points."""


class MonitorAlreadyActiveError(TablewatchError):
    def __init__(self, user_id: str, place_id: str, job_id: str | None = None):
        self.user_id = user_id
        self.place_id = place_id
        self.job_id = job_id
        super().__init__("Active monitor already exists for this restaurant")


class MonitorJobExistsError(TablewatchError):
    """The job id is taken by a finished (COMPLETED, CANCELLED or EXPIRED) job."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Monitor job {job_id} already exists ({status}); start a new job id")


class MonitorNotFoundError(TablewatchError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Monitor job not found: {job_id}")


class InvalidMonitorWindowError(TablewatchError):
    pass


class BookingNotFoundError(TablewatchError):
    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Booking not found: {booking_id}")


class BookingStateError(TablewatchError):
    pass


class PersistenceError(TablewatchError):
    """A database write/read failed on a synchronous entry point."""


class PlaceLookupError(TablewatchError):
    """Restaurant detail lookup failed (missing key, network, unknown place)."""


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code). First match wins.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

ERROR_RULES: list[tuple[type[Exception], int]] = [
    (MonitorAlreadyActiveError, STATUS_CONFLICT),
    (MonitorJobExistsError, STATUS_CONFLICT),
    (MonitorNotFoundError, STATUS_NOT_FOUND),
    (BookingNotFoundError, STATUS_NOT_FOUND),
    (InvalidMonitorWindowError, STATUS_BAD_REQUEST),
    (BookingStateError, STATUS_BAD_REQUEST),
    (PersistenceError, STATUS_SERVICE_UNAVAILABLE),
    (PlaceLookupError, STATUS_SERVICE_UNAVAILABLE),
]


def error_to_http(exc: Exception) -> HTTPException:
    """
    Map a service exception into an HTTPException.
    Uses ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for exc_type, status_code in ERROR_RULES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
