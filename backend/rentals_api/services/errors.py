"""Booking error taxonomy surfaced by the scheduling services."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any


class BookingError(Exception):
    """Base class for errors raised by booking services."""

    kind = "booking_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(BookingError):
    """Bad or missing input. Terminal for the request."""

    kind = "validation"


class LeadTimeError(BookingError):
    """Requested date or slot starts too soon."""

    kind = "lead_time"

    def __init__(
        self, message: str, *, earliest_available: date | datetime | None = None
    ) -> None:
        super().__init__(message)
        self.earliest_available = earliest_available

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        if self.earliest_available is not None:
            detail["earliest_available"] = self.earliest_available.isoformat()
        return detail


class ConflictError(BookingError):
    """The requested unit or slot is taken, whether seen up front or lost in a race."""

    kind = "conflict"

    def __init__(self, message: str, *, alternative: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.alternative = alternative

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        if self.alternative:
            detail["alternative"] = self.alternative
        return detail


class DependencyError(BookingError):
    """A collaborator (database, payment provider) failed. Safe to retry later."""

    kind = "dependency"


class BookingIntegrityError(BookingError):
    """An internal invariant was violated."""

    kind = "integrity"


__all__ = [
    "BookingError",
    "BookingIntegrityError",
    "ConflictError",
    "DependencyError",
    "LeadTimeError",
    "ValidationError",
]
