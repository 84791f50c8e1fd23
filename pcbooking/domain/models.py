"""
Domain models for resources, reservations and time ranges.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pendulum
from pendulum import DateTime


def ensure_aware(value: datetime, field: str = "instant") -> DateTime:
    """
    Return ``value`` as a pendulum DateTime, refusing naive datetimes.

    Wall-clock values without an offset are ambiguous, so they never enter
    the scheduling core.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field} must be timezone-aware, got naive {value.isoformat()}")
    return pendulum.instance(value)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.
    
    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime
    
    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")
    
    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)
    
    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another; touching ends do not."""
        return self.start < other.end and self.end > other.start

    def contains(self, instant: datetime) -> bool:
        """Check if an instant falls inside the range."""
        return self.start <= instant < self.end
    
    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class Resource:
    """A bookable machine."""
    id: str
    name: str


@dataclass(frozen=True)
class TimeSlot:
    """One cell of the day grid, identified by its wall-clock hour and minute."""
    hour: int
    minute: int

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute must be between 0 and 59, got {self.minute}")

    def label(self) -> str:
        """Format as ``HH:mm``."""
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class Reservation:
    """
    A booking of one resource for ``[start, end)``.

    ``resource_name`` is display data joined in by listing reads; it is not
    part of the stored record.
    """
    id: str
    resource_id: str
    start: DateTime
    end: DateTime
    holder_name: str
    note: Optional[str] = None
    resource_name: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @property
    def window(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def format_display(self) -> str:
        """Format as ``holder @ resource: window``."""
        where = self.resource_name or self.resource_id
        return f"{self.holder_name} @ {where}: {self.window}"
