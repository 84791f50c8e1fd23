"""
Application service for booking, editing and cancelling PC reservations.

The service owns the booking rules: input validation, the no-overlap check
and retention. Persistence sits behind ``ReservationStoreProtocol`` so the
SQL adapter, the in-memory adapter or a test stub can be plugged in.

The overlap check is handed to the store as a callback and runs inside the
store's write transaction, so two simultaneous requests for the same machine,
from one process or from several, are decided one after the other.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from ..domain.exceptions import (
    InvalidInputError,
    NotFoundError,
    OverlapConflictError,
)
from ..domain.models import Reservation, Resource, ensure_aware
from ..domain.overlap import OverlapValidator
from ..domain.time_grid import TimeGrid

logger = logging.getLogger(__name__)

ConflictCheck = Callable[[List[Reservation]], None]


class ReservationStoreProtocol(Protocol):
    """Protocol describing the storage behaviour needed by the service."""

    async def list_resources(self) -> List[Resource]:
        """Return all resources ordered by display name."""

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        """Return one resource or None."""

    async def add_resource(self, resource: Resource) -> Resource:
        """Register a resource."""

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        """Return one reservation or None."""

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        """Return reservations starting in ``[start, end)``, with resource names, oldest first."""

    async def find_intersecting(self, start: datetime, end: datetime) -> List[Reservation]:
        """Return reservations covering any part of ``[start, end)``, with resource names, oldest first."""

    async def list_all(self, limit: Optional[int] = None) -> List[Reservation]:
        """Return reservations with resource names, newest start first."""

    async def insert(self, reservation: Reservation, check: Optional[ConflictCheck] = None) -> Reservation:
        """
        Persist a new reservation.

        ``check`` receives the reservations on the same resource that intersect
        the new window and may raise to abort. Check and write are one
        serialized unit: no other writer can slip in between.
        """

    async def update(
        self,
        reservation_id: str,
        fields: Dict[str, Any],
        check: Optional[ConflictCheck] = None,
    ) -> Reservation:
        """
        Apply ``fields`` to one reservation in a single write.

        With ``check``, the other reservations intersecting the resulting
        window are passed to it first, atomically with the write.
        """

    async def delete_by_id(self, reservation_id: str) -> bool:
        """Delete one reservation; False when it did not exist."""

    async def delete_where_end_before(self, cutoff: datetime) -> int:
        """Delete reservations with ``end < cutoff``; return how many."""


@dataclass
class AllReservations:
    """Every stored reservation, newest first, plus a per-local-date grouping."""
    reservations: List[Reservation]
    by_date: Dict[str, List[Reservation]] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        return len(self.reservations)


def _new_id() -> str:
    return uuid.uuid4().hex


class ReservationService:
    """
    Orchestrates validation, overlap checks and store mutations.

    The store is injected once and held for the service's lifetime.
    """

    def __init__(
        self,
        store: ReservationStoreProtocol,
        grid: Optional[TimeGrid] = None,
        validator: Optional[OverlapValidator] = None,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._store = store
        self.grid = grid or TimeGrid()
        self._validator = validator or OverlapValidator()
        self._id_factory = id_factory

    # Resources

    async def list_resources(self) -> List[Resource]:
        return await self._store.list_resources()

    async def ensure_resources(self, resources: Iterable[Resource]) -> List[Resource]:
        """Register any of ``resources`` the store does not know yet."""
        added: List[Resource] = []
        for resource in resources:
            if await self._store.get_resource(resource.id) is None:
                added.append(await self._store.add_resource(resource))
                logger.info("Registered resource %s (%s)", resource.id, resource.name)
        return added

    # Lifecycle

    async def create_reservation(
        self,
        *,
        resource_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        holder_name: str,
        note: Optional[str] = None,
    ) -> Reservation:
        """
        Book ``[start, end)`` on a resource.

        Raises:
            InvalidInputError: missing fields, empty name, empty window or unknown resource
            OverlapConflictError: the window collides with another reservation
        """
        holder = self._require_name(holder_name)
        if not resource_id:
            raise InvalidInputError("A resource must be selected")
        start, end = self._require_window(start, end)

        resource = await self._store.get_resource(resource_id)
        if resource is None:
            raise InvalidInputError(f"Unknown resource: {resource_id!r}")

        def check(existing: List[Reservation]) -> None:
            self._reject_conflict(resource_id, resource.name, start, end, existing)

        reservation = await self._store.insert(
            Reservation(
                id=self._id_factory(),
                resource_id=resource_id,
                start=start,
                end=end,
                holder_name=holder,
                note=self._clean_note(note),
            ),
            check=check,
        )

        logger.info(
            "Reservation created: %s on %s %s by %s",
            reservation.id, resource_id, reservation.window, holder,
        )
        return reservation

    async def update_reservation(
        self,
        reservation_id: str,
        *,
        holder_name: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Reservation:
        """
        Edit a reservation; omitted fields keep their stored value.

        An empty ``note`` clears it. A changed window is re-checked against
        every other reservation on the same resource.

        Raises:
            NotFoundError: ``reservation_id`` does not resolve
            InvalidInputError: empty name or empty window
            OverlapConflictError: the new window collides with another reservation
        """
        current = await self._require_reservation(reservation_id)
        holder = self._require_name(holder_name)
        start = self._aware_or_none(start, "start")
        end = self._aware_or_none(end, "end")
        if start is not None and end is not None and end <= start:
            raise InvalidInputError("End time must be after start time")

        new_start = start if start is not None else current.start
        new_end = end if end is not None else current.end
        if new_end <= new_start:
            raise InvalidInputError("End time must be after start time")

        fields: Dict[str, Any] = {"holder_name": holder}
        if note is not None:
            fields["note"] = self._clean_note(note)

        check: Optional[ConflictCheck] = None
        if new_start != current.start or new_end != current.end:
            resource = await self._store.get_resource(current.resource_id)
            resource_name = resource.name if resource else current.resource_id
            # Both ends are written so the stored window is exactly the checked one.
            fields["start"] = new_start
            fields["end"] = new_end

            def check(existing: List[Reservation]) -> None:
                self._reject_conflict(
                    current.resource_id,
                    resource_name,
                    new_start,
                    new_end,
                    existing,
                    exclude_id=reservation_id,
                )

        updated = await self._store.update(reservation_id, fields, check=check)

        logger.info("Reservation updated: %s (%s)", reservation_id, ", ".join(sorted(fields)))
        return updated

    async def delete_reservation(self, reservation_id: str) -> None:
        """
        Remove one reservation.

        Raises:
            NotFoundError: ``reservation_id`` does not resolve
        """
        await self._require_reservation(reservation_id)
        if not await self._store.delete_by_id(reservation_id):
            raise NotFoundError(f"Reservation {reservation_id} was not found")
        logger.info("Reservation deleted: %s", reservation_id)

    # Reads

    async def get_reservation(self, reservation_id: str) -> Reservation:
        """
        Raises:
            NotFoundError: ``reservation_id`` does not resolve
        """
        return await self._require_reservation(reservation_id)

    async def list_reservations_for_day(
        self, day: date, resource_id: Optional[str] = None
    ) -> List[Reservation]:
        """Reservations starting on the local calendar day ``day``, oldest first."""
        bounds = self.grid.day_range(day)
        reservations = await self._store.find_by_date_range(bounds.start, bounds.end)
        if resource_id is not None:
            reservations = [r for r in reservations if r.resource_id == resource_id]
        return sorted(reservations, key=lambda r: r.start)

    async def list_occupancy_for_day(self, day: date) -> List[Reservation]:
        """
        Reservations covering any part of the local day ``day``, oldest first.

        Unlike ``list_reservations_for_day`` this includes a booking carried
        over from the previous evening, so the grid marks every covered cell.
        """
        bounds = self.grid.day_range(day)
        reservations = await self._store.find_intersecting(bounds.start, bounds.end)
        return sorted(reservations, key=lambda r: r.start)

    async def list_all(
        self, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> AllReservations:
        """Sweep stale reservations, then return everything newest first."""
        if limit is not None and limit <= 0:
            raise InvalidInputError(f"limit must be greater than zero, got {limit}")
        await self.purge_stale(now=now)
        reservations = await self._store.list_all(limit=limit)

        by_date: Dict[str, List[Reservation]] = defaultdict(list)
        for reservation in reservations:
            by_date[self.grid.local_date(reservation.start).isoformat()].append(reservation)
        return AllReservations(reservations=reservations, by_date=dict(by_date))

    # Retention

    async def purge_before(self, cutoff: datetime) -> int:
        """Delete every reservation that ended strictly before ``cutoff``."""
        cutoff = ensure_aware(cutoff, "cutoff")
        removed = await self._store.delete_where_end_before(cutoff)
        if removed:
            logger.info("Purged %d reservation(s) ending before %s", removed, cutoff.to_iso8601_string())
        return removed

    async def purge_stale(self, now: Optional[datetime] = None) -> int:
        """Delete reservations that ended before the start of today."""
        return await self.purge_before(self.grid.start_of_today(now))

    # Helpers

    async def _require_reservation(self, reservation_id: str) -> Reservation:
        reservation = await self._store.get(reservation_id) if reservation_id else None
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} was not found")
        return reservation

    def _reject_conflict(
        self,
        resource_id: str,
        resource_name: str,
        start: datetime,
        end: datetime,
        existing: List[Reservation],
        exclude_id: Optional[str] = None,
    ) -> None:
        conflict = self._validator.find_conflict(
            resource_id, start, end, existing, exclude_id=exclude_id
        )
        if conflict is None:
            return
        window = f"{self.grid.format_time(conflict.start)}～{self.grid.format_time(conflict.end)}"
        logger.warning(
            "Rejected %s-%s on %s: overlaps reservation %s",
            start.isoformat(), end.isoformat(), resource_id, conflict.id,
        )
        raise OverlapConflictError(
            f"{resource_name} is already reserved {window} "
            f"({self.grid.local_date(conflict.start).isoformat()})",
            conflicting=conflict,
        )

    @staticmethod
    def _require_name(holder_name: Optional[str]) -> str:
        if not holder_name or not holder_name.strip():
            raise InvalidInputError("A name is required")
        return holder_name.strip()

    @staticmethod
    def _clean_note(note: Optional[str]) -> Optional[str]:
        if note is None or not note.strip():
            return None
        return note

    def _require_window(self, start: Optional[datetime], end: Optional[datetime]):
        if start is None or end is None:
            raise InvalidInputError("Start and end times are required")
        start = self._aware_or_none(start, "start")
        end = self._aware_or_none(end, "end")
        if end <= start:
            raise InvalidInputError("End time must be after start time")
        return start, end

    @staticmethod
    def _aware_or_none(value: Optional[datetime], name: str):
        if value is None:
            return None
        try:
            return ensure_aware(value, name)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
