"""
Adapters layer - Reservation storage backends.
"""

from .memory_store import InMemoryReservationStore
from .sql_store import SqlReservationStore

__all__ = ["InMemoryReservationStore", "SqlReservationStore"]
