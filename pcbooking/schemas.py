"""
Wire models for reservations crossing the application boundary.

Every timestamp is an absolute instant: ``AwareDatetime`` rejects strings
without an offset, and output is always rendered in UTC.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pendulum
from pydantic import AwareDatetime, BaseModel, Field, TypeAdapter, field_serializer

from .domain.models import Reservation, Resource
from .services.reservations import AllReservations

_instant_adapter = TypeAdapter(AwareDatetime)


def parse_instant(value: str) -> pendulum.DateTime:
    """
    Parse an ISO-8601 timestamp that carries an offset or ``Z``.

    Raises:
        ValueError: for malformed or naive timestamps
    """
    return pendulum.instance(_instant_adapter.validate_python(value))


def _utc(value: datetime) -> datetime:
    utc = value.astimezone(timezone.utc)
    return datetime(
        utc.year, utc.month, utc.day, utc.hour, utc.minute, utc.second, utc.microsecond,
        tzinfo=timezone.utc,
    )


class ResourceOut(BaseModel):
    """A bookable machine."""
    id: str
    name: str

    @classmethod
    def from_domain(cls, resource: Resource) -> "ResourceOut":
        return cls(id=resource.id, name=resource.name)

    def to_domain(self) -> Resource:
        return Resource(id=self.id, name=self.name)


class ReservationCreate(BaseModel):
    """Validated booking request."""
    resource_id: str
    start: AwareDatetime
    end: AwareDatetime
    holder_name: str
    note: Optional[str] = None


class ReservationUpdate(BaseModel):
    """Validated edit request; omitted times keep their stored value."""
    holder_name: str
    start: Optional[AwareDatetime] = None
    end: Optional[AwareDatetime] = None
    note: Optional[str] = None


class ReservationOut(BaseModel):
    """A stored reservation as returned to callers."""
    id: str
    resource_id: str
    resource_name: Optional[str] = None
    start: AwareDatetime
    end: AwareDatetime
    holder_name: str
    note: Optional[str] = None

    @field_serializer("start", "end")
    def _serialize_instant(self, value: datetime) -> str:
        return _utc(value).isoformat().replace("+00:00", "Z")

    @classmethod
    def from_domain(cls, reservation: Reservation) -> "ReservationOut":
        return cls(
            id=reservation.id,
            resource_id=reservation.resource_id,
            resource_name=reservation.resource_name,
            start=_utc(reservation.start),
            end=_utc(reservation.end),
            holder_name=reservation.holder_name,
            note=reservation.note,
        )

    def to_domain(self) -> Reservation:
        return Reservation(
            id=self.id,
            resource_id=self.resource_id,
            start=pendulum.instance(self.start),
            end=pendulum.instance(self.end),
            holder_name=self.holder_name,
            note=self.note,
            resource_name=self.resource_name,
        )


class AllReservationsOut(BaseModel):
    """Every reservation newest first, grouped by local calendar date."""
    reservations: List[ReservationOut] = Field(default_factory=list)
    by_date: Dict[str, List[ReservationOut]] = Field(default_factory=dict)
    total_count: int = 0

    @classmethod
    def from_domain(cls, listing: AllReservations) -> "AllReservationsOut":
        return cls(
            reservations=[ReservationOut.from_domain(r) for r in listing.reservations],
            by_date={
                day: [ReservationOut.from_domain(r) for r in items]
                for day, items in listing.by_date.items()
            },
            total_count=listing.total_count,
        )


class StoreSnapshot(BaseModel):
    """File format used to seed and dump the in-memory store."""
    resources: List[ResourceOut] = Field(default_factory=list)
    reservations: List[ReservationOut] = Field(default_factory=list)
