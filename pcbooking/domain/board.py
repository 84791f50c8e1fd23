"""
Read-only view of one day's reservations, indexed for grid rendering.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from .models import Reservation
from .time_grid import TimeGrid


class DayBoard:
    """Answers per-cell questions (reserved? by whom? first cell?) for one day."""

    def __init__(self, grid: TimeGrid, day: date, reservations: Iterable[Reservation] = ()):
        self.grid = grid
        self.day = day
        self._by_resource: Dict[str, List[Reservation]] = defaultdict(list)
        for reservation in reservations:
            self._by_resource[reservation.resource_id].append(reservation)
        for items in self._by_resource.values():
            items.sort(key=lambda r: r.start)

    def reservations_for(self, resource_id: str) -> List[Reservation]:
        return list(self._by_resource.get(resource_id, []))

    def reservation_at(self, resource_id: str, slot_index: int) -> Optional[Reservation]:
        """Return the reservation covering the start of a cell, if any."""
        cell_time = self.grid.to_instant(self.day, self.grid.slot(slot_index))
        for reservation in self._by_resource.get(resource_id, []):
            if reservation.start <= cell_time < reservation.end:
                return reservation
        return None

    def is_cell_reserved(self, resource_id: str, slot_index: int) -> bool:
        return self.reservation_at(resource_id, slot_index) is not None

    def holder_at(self, resource_id: str, slot_index: int) -> Optional[str]:
        reservation = self.reservation_at(resource_id, slot_index)
        return reservation.holder_name if reservation else None

    def is_reservation_start(self, resource_id: str, slot_index: int) -> bool:
        """True for the first cell of a reservation on this day."""
        reservation = self.reservation_at(resource_id, slot_index)
        if reservation is None:
            return False
        if slot_index == 0:
            return True
        previous = self.reservation_at(resource_id, slot_index - 1)
        return previous is None or previous.id != reservation.id

    def format_time_range(self, start: Optional[datetime], end: Optional[datetime]) -> str:
        """Format a window as ``HH:mm～HH:mm``; empty when either end is missing."""
        if start is None or end is None:
            return ""
        return f"{self.grid.format_time(start)}～{self.grid.format_time(end)}"
