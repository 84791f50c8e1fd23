"""
Finite state machine for drag-selecting a booking window on the day grid.

The selection is a frozen value; every transition is a pure function that
returns a new value. ``SelectionStateMachine`` wraps those functions with the
session-local context a UI needs (the grid, the chosen day, the day's
reservations) and records the transition history.

Usage:
    sm = SelectionStateMachine(grid, day)
    sm.begin_at("pc-1", 60)      # 10:00
    sm.move_to("pc-1", 62)       # drag to 10:20
    sm.release()
    assert sm.selection.phase == SelectionPhase.COMMITTED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from pendulum import DateTime

from .board import DayBoard
from .exceptions import InvalidTransitionError
from .models import Reservation
from .time_grid import TimeGrid

logger = logging.getLogger(__name__)


class SelectionPhase(str, Enum):
    """All possible phases of a grid selection."""
    IDLE = "idle"
    SELECTING = "selecting"
    COMMITTED = "committed"


@dataclass(frozen=True)
class Selection:
    """
    Transient selection state owned by one UI session.

    ``anchor`` and ``current`` are slot indices and are only meaningful while
    selecting; ``start``/``end`` hold the derived window.
    """
    phase: SelectionPhase = SelectionPhase.IDLE
    resource_id: Optional[str] = None
    anchor: Optional[int] = None
    current: Optional[int] = None
    start: Optional[DateTime] = None
    end: Optional[DateTime] = None

    def covers(self, resource_id: str, instant: datetime) -> bool:
        """True when ``instant`` lies inside the selected window on ``resource_id``."""
        if self.resource_id != resource_id or self.start is None or self.end is None:
            return False
        return self.start <= instant < self.end


IDLE = Selection()


def span(grid: TimeGrid, day: date, anchor: int, current: int) -> tuple[DateTime, DateTime]:
    """
    Window between two slots, inclusive of the later one, in either drag direction.
    """
    first, last = min(anchor, current), max(anchor, current)
    return grid.to_instant(day, grid.slot(first)), grid.slot_end(day, grid.slot(last))


def begin_at(grid: TimeGrid, day: date, resource_id: str, slot_index: int) -> Selection:
    """Start a selection on one slot."""
    start, end = span(grid, day, slot_index, slot_index)
    return Selection(
        phase=SelectionPhase.SELECTING,
        resource_id=resource_id,
        anchor=slot_index,
        current=slot_index,
        start=start,
        end=end,
    )


def move_to(selection: Selection, grid: TimeGrid, day: date, resource_id: str, slot_index: int) -> Selection:
    """Extend a selection; ignored unless selecting on the same resource."""
    if selection.phase != SelectionPhase.SELECTING or selection.resource_id != resource_id:
        return selection
    start, end = span(grid, day, selection.anchor, slot_index)
    return replace(selection, current=slot_index, start=start, end=end)


def release(selection: Selection) -> Selection:
    """Freeze the window; a degenerate selection falls back to idle."""
    if selection.phase != SelectionPhase.SELECTING:
        return selection
    if selection.resource_id is None or selection.start is None or selection.end is None:
        return IDLE
    return Selection(
        phase=SelectionPhase.COMMITTED,
        resource_id=selection.resource_id,
        start=selection.start,
        end=selection.end,
    )


def confirm(selection: Selection) -> Selection:
    """Clear a committed selection after it has been persisted."""
    if selection.phase != SelectionPhase.COMMITTED:
        raise InvalidTransitionError(
            f"Cannot confirm from '{selection.phase.value}'; only a committed selection can be confirmed"
        )
    return IDLE


def cancel(selection: Selection) -> Selection:
    """Discard any selection. Always succeeds."""
    return IDLE


@dataclass
class SelectionEntry:
    """Recorded history entry for a transition."""
    event: str
    phase: SelectionPhase
    at: datetime


class SelectionStateMachine:
    """
    Session-local driver for the selection transitions.

    Pointer events are expected serially; each call runs to completion
    before the next one is handled.
    """

    def __init__(self, grid: TimeGrid, day: date, reservations: Iterable[Reservation] = ()):
        self.grid = grid
        self._day = day
        self._board = DayBoard(grid, day, reservations)
        self._selection = IDLE
        self._history: List[SelectionEntry] = []

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def phase(self) -> SelectionPhase:
        return self._selection.phase

    @property
    def day(self) -> date:
        return self._day

    @property
    def board(self) -> DayBoard:
        return self._board

    def load_reservations(self, reservations: Iterable[Reservation]) -> None:
        """Replace the day's reservations used to block reserved cells."""
        self._board = DayBoard(self.grid, self._day, reservations)

    def change_date(self, day: date, reservations: Iterable[Reservation] = ()) -> Selection:
        """Switch to another day; any selection is dropped."""
        self._day = day
        self._board = DayBoard(self.grid, day, reservations)
        return self._apply("change_date", IDLE)

    async def show_day(self, service, day: date) -> Selection:
        """Switch to ``day`` with every reservation covering it, carry-overs included."""
        return self.change_date(day, await service.list_occupancy_for_day(day))

    async def refresh(self, service) -> None:
        """Reload the current day's occupancy; the selection is kept."""
        self.load_reservations(await service.list_occupancy_for_day(self._day))

    def begin_at(self, resource_id: str, slot_index: int) -> Selection:
        """Start selecting at a free cell; reserved cells are a no-op."""
        if self._board.is_cell_reserved(resource_id, slot_index):
            logger.debug("Ignoring begin on reserved cell %s/%d", resource_id, slot_index)
            return self._selection
        return self._apply("begin_at", begin_at(self.grid, self._day, resource_id, slot_index))

    def move_to(self, resource_id: str, slot_index: int) -> Selection:
        return self._apply(
            "move_to", move_to(self._selection, self.grid, self._day, resource_id, slot_index)
        )

    def release(self) -> Selection:
        return self._apply("release", release(self._selection))

    def confirm(self) -> Selection:
        return self._apply("confirm", confirm(self._selection))

    def cancel(self) -> Selection:
        return self._apply("cancel", cancel(self._selection))

    def is_cell_selected(self, resource_id: str, slot_index: int) -> bool:
        cell_time = self.grid.to_instant(self._day, self.grid.slot(slot_index))
        return self._selection.covers(resource_id, cell_time)

    async def submit(self, service, holder_name: str, note: Optional[str] = None) -> Reservation:
        """
        Persist the committed window and return to idle.

        On any rejection the selection stays committed so the user can retry
        or cancel.
        """
        selection = self._selection
        if selection.phase != SelectionPhase.COMMITTED:
            raise InvalidTransitionError(
                f"Cannot submit from '{selection.phase.value}'; release the selection first"
            )
        reservation = await service.create_reservation(
            resource_id=selection.resource_id,
            start=selection.start,
            end=selection.end,
            holder_name=holder_name,
            note=note,
        )
        self.confirm()
        return reservation

    def get_history(self) -> List[SelectionEntry]:
        """Return the full transition history."""
        return list(self._history)

    def _apply(self, event: str, new: Selection) -> Selection:
        old = self._selection
        self._selection = new
        if new is not old:
            self._history.append(
                SelectionEntry(event=event, phase=new.phase, at=datetime.now(timezone.utc))
            )
            logger.debug("Selection %s: %s -> %s", event, old.phase.value, new.phase.value)
        return new
