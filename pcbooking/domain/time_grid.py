"""
Discretization of a local calendar day into fixed-width booking slots.

All local-day computations in the application go through a ``TimeGrid`` so
there is exactly one timezone policy: instants are absolute, and "a day"
always means a calendar day in the grid's named timezone.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

import pendulum
from pendulum import DateTime

from .models import TimeRange, TimeSlot, ensure_aware

DEFAULT_TIMEZONE = "Asia/Tokyo"
SLOT_MINUTES = 10


class TimeGrid:
    """
    Maps slot indices to wall-clock times and wall-clock times to instants.

    With the default 10-minute slots a day has 144 slots, 00:00 through 23:50.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE, slot_minutes: int = SLOT_MINUTES):
        if slot_minutes <= 0 or 60 % slot_minutes != 0:
            raise ValueError(f"slot_minutes must evenly divide 60, got {slot_minutes}")
        self.timezone = timezone
        self.slot_minutes = slot_minutes
        self._tz = pendulum.timezone(timezone)
        self._slots = tuple(
            TimeSlot(hour=hour, minute=minute)
            for hour in range(24)
            for minute in range(0, 60, slot_minutes)
        )

    def __len__(self) -> int:
        return len(self._slots)

    def slots(self) -> List[TimeSlot]:
        """Return every slot of the day in order."""
        return list(self._slots)

    def slot(self, index: int) -> TimeSlot:
        """Return the slot at ``index``."""
        if not 0 <= index < len(self._slots):
            raise ValueError(f"Slot index must be between 0 and {len(self._slots) - 1}, got {index}")
        return self._slots[index]

    def index_of(self, slot: TimeSlot) -> int:
        """Return the index of a slot on this grid."""
        if slot.minute % self.slot_minutes != 0:
            raise ValueError(f"{slot.label()} is not aligned to {self.slot_minutes}-minute slots")
        return slot.hour * (60 // self.slot_minutes) + slot.minute // self.slot_minutes

    def hour_boundaries(self) -> List[int]:
        """Hour labels for the grid header."""
        return list(range(24))

    def time_options(self) -> List[str]:
        """``HH:mm`` labels for every slot, as offered by the edit form."""
        return [slot.label() for slot in self._slots]

    def next_option(self, label: str) -> Optional[str]:
        """Return the label one slot after ``label``, or None after the last slot."""
        options = self.time_options()
        try:
            position = options.index(label)
        except ValueError:
            raise ValueError(f"Unknown time option: {label!r}") from None
        if position + 1 < len(options):
            return options[position + 1]
        return None

    def to_instant(self, day: date, slot: TimeSlot) -> DateTime:
        """Combine a calendar date and a slot into an instant in the grid timezone."""
        return pendulum.datetime(
            day.year, day.month, day.day, slot.hour, slot.minute, 0, tz=self._tz
        )

    def slot_end(self, day: date, slot: TimeSlot) -> DateTime:
        """Return the instant one slot-width after ``slot`` starts."""
        return self.to_instant(day, slot).add(minutes=self.slot_minutes)

    def instant_at(self, day: date, label: str) -> DateTime:
        """Parse an ``HH:mm`` label on ``day``; the label must be slot aligned."""
        try:
            hour_text, minute_text = label.strip().split(":")
            slot = TimeSlot(hour=int(hour_text), minute=int(minute_text))
        except ValueError:
            raise ValueError(f"Time must be formatted as HH:mm, got {label!r}") from None
        self.index_of(slot)
        return self.to_instant(day, slot)

    def local_date(self, instant: datetime) -> date:
        """Return the calendar date of ``instant`` in the grid timezone."""
        local = pendulum.instance(instant).in_timezone(self._tz)
        return date(local.year, local.month, local.day)

    def day_range(self, day: date) -> TimeRange:
        """Return ``[local midnight, next local midnight)`` for ``day``."""
        start = pendulum.datetime(day.year, day.month, day.day, tz=self._tz)
        return TimeRange(start=start, end=start.add(days=1))

    def start_of_today(self, now: Optional[datetime] = None) -> DateTime:
        """Return local midnight of the current day in the grid timezone."""
        current = ensure_aware(now, "now") if now is not None else pendulum.now(self._tz)
        return self.day_range(self.local_date(current)).start

    def today(self, now: Optional[datetime] = None) -> date:
        """Return today's calendar date in the grid timezone."""
        return self.local_date(self.start_of_today(now))

    def slot_index_for(self, instant: datetime) -> int:
        """Return the index of the slot containing ``instant`` on its local day."""
        local = pendulum.instance(instant).in_timezone(self._tz)
        return local.hour * (60 // self.slot_minutes) + local.minute // self.slot_minutes

    def format_time(self, instant: datetime) -> str:
        """Format an instant as ``HH:mm`` in the grid timezone."""
        return pendulum.instance(instant).in_timezone(self._tz).format("HH:mm")
