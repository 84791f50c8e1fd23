"""
Shared fixtures and builders.
"""

from datetime import date

import pendulum
import pytest

from pcbooking.domain.models import Reservation, Resource
from pcbooking.domain.time_grid import TimeGrid

TZ = "Asia/Tokyo"
DAY = date(2024, 1, 10)


def at(label: str, day: str = "2024-01-10") -> pendulum.DateTime:
    """Local wall-clock time on the test day."""
    return pendulum.parse(f"{day} {label}", tz=TZ)


def make_reservation(
    id: str,
    start: str,
    end: str,
    resource_id: str = "1",
    holder_name: str = "Alice",
    day: str = "2024-01-10",
    note=None,
) -> Reservation:
    return Reservation(
        id=id,
        resource_id=resource_id,
        start=at(start, day),
        end=at(end, day),
        holder_name=holder_name,
        note=note,
    )


@pytest.fixture
def grid() -> TimeGrid:
    return TimeGrid(timezone=TZ)


@pytest.fixture
def pcs():
    return [Resource(id="1", name="PC-1"), Resource(id="2", name="PC-2")]
