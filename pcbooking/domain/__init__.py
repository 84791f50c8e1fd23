"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .board import DayBoard
from .exceptions import (
    BookingError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    OverlapConflictError,
    StorageUnavailableError,
)
from .long_press import LongPressGate, NullScrollLock
from .models import Reservation, Resource, TimeRange, TimeSlot
from .overlap import OverlapValidator
from .selection import Selection, SelectionPhase, SelectionStateMachine
from .time_grid import TimeGrid

__all__ = [
    "BookingError",
    "DayBoard",
    "InvalidInputError",
    "InvalidTransitionError",
    "LongPressGate",
    "NotFoundError",
    "NullScrollLock",
    "OverlapConflictError",
    "OverlapValidator",
    "Reservation",
    "Resource",
    "Selection",
    "SelectionPhase",
    "SelectionStateMachine",
    "StorageUnavailableError",
    "TimeGrid",
    "TimeRange",
    "TimeSlot",
]
