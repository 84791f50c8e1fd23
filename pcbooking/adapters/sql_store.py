"""
SQLAlchemy Core reservation store.

Instants are written in UTC and read back as UTC pendulum DateTimes, so the
database never holds local wall-clock values. Blocking driver calls run in a
worker thread; each call is one transaction.

A checked insert or update locks the resource before reading its overlapping
reservations: ``SELECT ... FOR UPDATE`` on the ``computers`` row where the
database supports it, and ``BEGIN IMMEDIATE`` on SQLite, which takes the
database write lock up front. Concurrent writers, in this process or another,
queue behind that lock.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import pendulum
import sqlalchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..domain.exceptions import NotFoundError, StorageUnavailableError
from ..domain.models import Reservation, Resource
from ..services.reservations import ConflictCheck

logger = logging.getLogger(__name__)

T = TypeVar("T")

metadata = sqlalchemy.MetaData()

computers = sqlalchemy.Table(
    "computers",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String, nullable=False, unique=True),
)

reservations = sqlalchemy.Table(
    "reservations",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String, primary_key=True),
    sqlalchemy.Column(
        "computer_id",
        sqlalchemy.String,
        sqlalchemy.ForeignKey("computers.id"),
        nullable=False,
        index=True,
    ),
    sqlalchemy.Column("start_time", sqlalchemy.DateTime(timezone=True), nullable=False, index=True),
    sqlalchemy.Column("end_time", sqlalchemy.DateTime(timezone=True), nullable=False),
    sqlalchemy.Column("user_name", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("notes", sqlalchemy.Text, nullable=True),
    sqlalchemy.CheckConstraint("start_time < end_time", name="ck_reservation_window"),
)

COLUMN_FOR_FIELD = {
    "holder_name": "user_name",
    "note": "notes",
    "start": "start_time",
    "end": "end_time",
}


def _to_utc(value: datetime) -> pendulum.DateTime:
    return pendulum.instance(value).in_timezone("UTC")


def _from_db(value: datetime) -> pendulum.DateTime:
    # SQLite hands back naive values; they were written as UTC.
    return pendulum.instance(value, tz="UTC").in_timezone("UTC")


def _sqlite_manual_begin(dbapi_connection, connection_record) -> None:
    # pysqlite would otherwise issue its own deferred BEGIN lazily.
    dbapi_connection.isolation_level = None


def _sqlite_begin_immediate(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


class SqlReservationStore:
    """Reservation store backed by any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine):
        self.engine = engine
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _sqlite_manual_begin)
            event.listen(engine, "begin", _sqlite_begin_immediate)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlReservationStore":
        """Create a store; in-memory SQLite shares one connection across threads."""
        if database_url.startswith("sqlite"):
            options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                options["poolclass"] = StaticPool
            engine = sqlalchemy.create_engine(database_url, **options)
        else:
            engine = sqlalchemy.create_engine(database_url)
        return cls(engine)

    def create_schema(self) -> None:
        """Create tables if they don't exist."""
        try:
            metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Could not prepare the database: {exc}") from exc

    def dispose(self) -> None:
        self.engine.dispose()

    # Resources

    async def list_resources(self) -> List[Resource]:
        def query(conn) -> List[Resource]:
            rows = conn.execute(computers.select().order_by(computers.c.name))
            return [Resource(id=row.id, name=row.name) for row in rows]

        return await self._run(query)

    async def get_resource(self, resource_id: str) -> Optional[Resource]:
        def query(conn) -> Optional[Resource]:
            row = conn.execute(computers.select().where(computers.c.id == resource_id)).first()
            return Resource(id=row.id, name=row.name) if row else None

        return await self._run(query)

    async def add_resource(self, resource: Resource) -> Resource:
        def write(conn) -> Resource:
            conn.execute(computers.insert().values(id=resource.id, name=resource.name))
            return resource

        return await self._run(write)

    # Reservations

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        return await self._run(lambda conn: self._fetch(conn, reservation_id))

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        def query(conn) -> List[Reservation]:
            rows = conn.execute(
                self._joined_select()
                .where(
                    reservations.c.start_time >= _to_utc(start),
                    reservations.c.start_time < _to_utc(end),
                )
                .order_by(reservations.c.start_time)
            )
            return [self._to_reservation(row) for row in rows]

        return await self._run(query)

    async def find_intersecting(self, start: datetime, end: datetime) -> List[Reservation]:
        def query(conn) -> List[Reservation]:
            rows = conn.execute(
                self._joined_select()
                .where(
                    reservations.c.start_time < _to_utc(end),
                    reservations.c.end_time > _to_utc(start),
                )
                .order_by(reservations.c.start_time)
            )
            return [self._to_reservation(row) for row in rows]

        return await self._run(query)

    async def list_all(self, limit: Optional[int] = None) -> List[Reservation]:
        def query(conn) -> List[Reservation]:
            statement = self._joined_select().order_by(sqlalchemy.desc(reservations.c.start_time))
            if limit is not None:
                statement = statement.limit(limit)
            return [self._to_reservation(row) for row in conn.execute(statement)]

        return await self._run(query)

    async def insert(self, reservation: Reservation, check: Optional[ConflictCheck] = None) -> Reservation:
        def write(conn) -> Reservation:
            if check is not None:
                self._lock_resource(conn, reservation.resource_id)
                check(
                    self._overlapping(
                        conn, reservation.resource_id, reservation.start, reservation.end
                    )
                )
            conn.execute(
                reservations.insert().values(
                    id=reservation.id,
                    computer_id=reservation.resource_id,
                    start_time=_to_utc(reservation.start),
                    end_time=_to_utc(reservation.end),
                    user_name=reservation.holder_name,
                    notes=reservation.note,
                )
            )
            return self._fetch(conn, reservation.id)

        return await self._run(write)

    async def update(
        self,
        reservation_id: str,
        fields: Dict[str, Any],
        check: Optional[ConflictCheck] = None,
    ) -> Reservation:
        unknown = set(fields) - set(COLUMN_FOR_FIELD)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        values = {
            COLUMN_FOR_FIELD[name]: _to_utc(value) if name in ("start", "end") else value
            for name, value in fields.items()
        }

        def write(conn) -> Reservation:
            current = self._fetch(conn, reservation_id)
            if current is None:
                raise NotFoundError(f"Reservation {reservation_id} was not found")
            if check is not None:
                self._lock_resource(conn, current.resource_id)
                check(
                    self._overlapping(
                        conn,
                        current.resource_id,
                        fields.get("start", current.start),
                        fields.get("end", current.end),
                        exclude_id=reservation_id,
                    )
                )
            conn.execute(
                reservations.update().where(reservations.c.id == reservation_id).values(**values)
            )
            return self._fetch(conn, reservation_id)

        return await self._run(write)

    async def delete_by_id(self, reservation_id: str) -> bool:
        def write(conn) -> bool:
            result = conn.execute(reservations.delete().where(reservations.c.id == reservation_id))
            return result.rowcount > 0

        return await self._run(write)

    async def delete_where_end_before(self, cutoff: datetime) -> int:
        def write(conn) -> int:
            result = conn.execute(
                reservations.delete().where(reservations.c.end_time < _to_utc(cutoff))
            )
            return result.rowcount

        return await self._run(write)

    # Plumbing

    async def _run(self, work: Callable[[Any], T]) -> T:
        return await asyncio.to_thread(self._run_sync, work)

    def _run_sync(self, work: Callable[[Any], T]) -> T:
        try:
            with self.engine.begin() as conn:
                return work(conn)
        except SQLAlchemyError as exc:
            logger.error("Database operation failed: %s", exc)
            raise StorageUnavailableError(f"Reservation storage is unavailable: {exc}") from exc

    @staticmethod
    def _joined_select():
        return sqlalchemy.select(
            reservations.c.id,
            reservations.c.computer_id,
            reservations.c.start_time,
            reservations.c.end_time,
            reservations.c.user_name,
            reservations.c.notes,
            computers.c.name.label("computer_name"),
        ).select_from(
            reservations.outerjoin(computers, reservations.c.computer_id == computers.c.id)
        )

    @staticmethod
    def _to_reservation(row: Row) -> Reservation:
        return Reservation(
            id=row.id,
            resource_id=row.computer_id,
            start=_from_db(row.start_time),
            end=_from_db(row.end_time),
            holder_name=row.user_name,
            note=row.notes,
            resource_name=row.computer_name,
        )

    def _fetch(self, conn, reservation_id: str) -> Optional[Reservation]:
        row = conn.execute(
            self._joined_select().where(reservations.c.id == reservation_id)
        ).first()
        return self._to_reservation(row) if row else None

    def _overlapping(
        self,
        conn,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[Reservation]:
        statement = self._joined_select().where(
            reservations.c.computer_id == resource_id,
            reservations.c.start_time < _to_utc(end),
            reservations.c.end_time > _to_utc(start),
        )
        if exclude_id is not None:
            statement = statement.where(reservations.c.id != exclude_id)
        rows = conn.execute(statement.order_by(reservations.c.start_time))
        return [self._to_reservation(row) for row in rows]

    @staticmethod
    def _lock_resource(conn, resource_id: str) -> None:
        # FOR UPDATE is dropped by the SQLite compiler; BEGIN IMMEDIATE covers it there.
        conn.execute(
            sqlalchemy.select(computers.c.id)
            .where(computers.c.id == resource_id)
            .with_for_update()
        )
