"""
In-process reservation store, optionally seeded from a JSON snapshot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..domain.exceptions import NotFoundError, StorageUnavailableError
from ..domain.models import Reservation, Resource
from ..schemas import ReservationOut, ResourceOut, StoreSnapshot
from ..services.reservations import ConflictCheck

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"holder_name", "note", "start", "end"}


class InMemoryReservationStore:
    """
    Store that keeps resources and reservations in dictionaries.

    Useful for tests and demos. Every mutation replaces a whole record, so a
    reader never sees a half-applied update.
    """

    def __init__(self, resources: Optional[List[Resource]] = None, reservations: Optional[List[Reservation]] = None):
        self._resources: Dict[str, Resource] = {r.id: r for r in resources or []}
        self._reservations: Dict[str, Reservation] = {
            r.id: replace(r, resource_name=None) for r in reservations or []
        }

    @classmethod
    def from_json_file(cls, path: Path) -> "InMemoryReservationStore":
        """
        Load a snapshot written by ``dump_json_file``.

        Raises:
            StorageUnavailableError: if the file cannot be read or parsed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                snapshot = StoreSnapshot.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise StorageUnavailableError(f"Could not load reservations from {path}: {exc}") from exc

        store = cls(
            resources=[r.to_domain() for r in snapshot.resources],
            reservations=[r.to_domain() for r in snapshot.reservations],
        )
        logger.debug(
            "Loaded %d resource(s) and %d reservation(s) from %s",
            len(store._resources), len(store._reservations), path,
        )
        return store

    def dump_json_file(self, path: Path) -> None:
        """Write every resource and reservation to ``path``."""
        snapshot = StoreSnapshot(
            resources=[ResourceOut.from_domain(r) for r in self._resources.values()],
            reservations=[
                ReservationOut.from_domain(r)
                for r in sorted(self._reservations.values(), key=lambda r: r.start)
            ],
        )
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
        except OSError as exc:
            raise StorageUnavailableError(f"Could not write reservations to {path}: {exc}") from exc

    async def list_resources(self) -> List[Resource]:
        return sorted(self._resources.values(), key=lambda r: r.name)

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        return self._resources.get(resource_id)

    async def add_resource(self, resource: Resource) -> Resource:
        self._resources[resource.id] = resource
        return resource

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        reservation = self._reservations.get(reservation_id)
        return self._with_name(reservation) if reservation else None

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        return [
            self._with_name(r)
            for r in sorted(self._reservations.values(), key=lambda r: r.start)
            if start <= r.start < end
        ]

    async def find_intersecting(self, start: datetime, end: datetime) -> List[Reservation]:
        return [
            self._with_name(r)
            for r in sorted(self._reservations.values(), key=lambda r: r.start)
            if r.start < end and r.end > start
        ]

    async def list_all(self, limit: Optional[int] = None) -> List[Reservation]:
        ordered = sorted(self._reservations.values(), key=lambda r: r.start, reverse=True)
        if limit is not None:
            ordered = ordered[:limit]
        return [self._with_name(r) for r in ordered]

    # No await between the check and the write below.

    async def insert(self, reservation: Reservation, check: Optional[ConflictCheck] = None) -> Reservation:
        if check is not None:
            check(self._overlapping(reservation.resource_id, reservation.start, reservation.end))
        stored = replace(reservation, resource_name=None)
        self._reservations[stored.id] = stored
        return self._with_name(stored)

    async def update(
        self,
        reservation_id: str,
        fields: Dict[str, Any],
        check: Optional[ConflictCheck] = None,
    ) -> Reservation:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        current = self._reservations.get(reservation_id)
        if current is None:
            raise NotFoundError(f"Reservation {reservation_id} was not found")
        updated = replace(current, **fields)
        if check is not None:
            check(
                self._overlapping(
                    updated.resource_id, updated.start, updated.end, exclude_id=reservation_id
                )
            )
        self._reservations[reservation_id] = updated
        return self._with_name(updated)

    async def delete_by_id(self, reservation_id: str) -> bool:
        return self._reservations.pop(reservation_id, None) is not None

    async def delete_where_end_before(self, cutoff: datetime) -> int:
        stale = [r.id for r in self._reservations.values() if r.end < cutoff]
        for reservation_id in stale:
            del self._reservations[reservation_id]
        return len(stale)

    def _with_name(self, reservation: Reservation) -> Reservation:
        resource = self._resources.get(reservation.resource_id)
        return replace(reservation, resource_name=resource.name if resource else None)

    def _overlapping(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[Reservation]:
        return sorted(
            (
                self._with_name(r) for r in self._reservations.values()
                if r.resource_id == resource_id
                and r.id != exclude_id
                and r.start < end
                and r.end > start
            ),
            key=lambda r: r.start,
        )
