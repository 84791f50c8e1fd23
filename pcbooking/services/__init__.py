"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .reservations import AllReservations, ReservationService, ReservationStoreProtocol

__all__ = ["AllReservations", "ReservationService", "ReservationStoreProtocol"]
