"""
Domain-specific exception hierarchy for the PC booking application.

Every rejection carries a machine-distinguishable ``kind`` plus a
human-readable ``reason`` so callers can tell "pick another time" apart
from "fix the form".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Reservation


class BookingError(Exception):
    """Base class for all application-level errors."""

    kind = "booking_error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvalidInputError(BookingError):
    """Raised for an empty holder name, an empty window or a missing field."""

    kind = "invalid_input"


class OverlapConflictError(BookingError):
    """Raised when a candidate window collides with an existing reservation."""

    kind = "overlap_conflict"

    def __init__(self, reason: str, conflicting: "Reservation"):
        super().__init__(reason)
        self.conflicting = conflicting


class NotFoundError(BookingError):
    """Raised when a reservation id does not resolve."""

    kind = "not_found"


class StorageUnavailableError(BookingError):
    """Raised when the reservation store cannot be read or written."""

    kind = "storage_unavailable"


class InvalidTransitionError(Exception):
    """Raised when a selection transition is not valid from the current state."""
