"""
The no-overlap rule for reservations of a single resource.

Intervals are half-open, so a reservation ending at 10:30 and one starting
at 10:30 do not conflict. The single inequality used here covers the
start-inside, end-inside, containment and exact-match configurations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .models import Reservation


class OverlapValidator:
    """Decides whether a candidate window may be booked on a resource."""

    def find_conflict(
        self,
        resource_id: str,
        candidate_start: datetime,
        candidate_end: datetime,
        existing: Iterable[Reservation],
        exclude_id: Optional[str] = None,
    ) -> Optional[Reservation]:
        """
        Return the first existing reservation the candidate collides with.

        Reservations on other resources and the one named by ``exclude_id``
        (the reservation being edited) are ignored.
        """
        for reservation in sorted(existing, key=lambda r: r.start):
            if reservation.resource_id != resource_id:
                continue
            if exclude_id is not None and reservation.id == exclude_id:
                continue
            if candidate_start < reservation.end and reservation.start < candidate_end:
                return reservation
        return None

    def accepts(
        self,
        resource_id: str,
        candidate_start: datetime,
        candidate_end: datetime,
        existing: Iterable[Reservation],
        exclude_id: Optional[str] = None,
    ) -> bool:
        """Reject empty or inverted windows, then any collision."""
        if candidate_end <= candidate_start:
            return False
        conflict = self.find_conflict(
            resource_id, candidate_start, candidate_end, existing, exclude_id=exclude_id
        )
        return conflict is None
