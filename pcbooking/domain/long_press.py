"""
Touch long-press gate in front of the selection machine.

A touch must be held still for ``hold_ms`` before the selection begins.
Moving or lifting the finger earlier cancels it with no state change. While
a press is active the page scroll is suppressed, and it is restored on every
exit path: release, cancel and close.

The gate never reads a clock itself; callers pass event timestamps in
milliseconds, so it can be driven by a UI event loop or by tests alike.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

LONG_PRESS_MS = 500


class ScrollLock(Protocol):
    """Page-scroll side effect controlled by the gate."""

    def suppress(self) -> None:
        """Stop ambient scrolling."""

    def restore(self) -> None:
        """Re-enable ambient scrolling; must be idempotent."""


class NullScrollLock:
    """Scroll lock that only remembers whether scrolling is suppressed."""

    def __init__(self) -> None:
        self.suppressed = False

    def suppress(self) -> None:
        self.suppressed = True

    def restore(self) -> None:
        self.suppressed = False


class LongPressGate:
    """Turns raw touch events into begin/release calls after a hold."""

    def __init__(self, scroll_lock: Optional[ScrollLock] = None, hold_ms: int = LONG_PRESS_MS):
        if hold_ms <= 0:
            raise ValueError(f"hold_ms must be greater than zero, got {hold_ms}")
        self.hold_ms = hold_ms
        self.scroll_lock = scroll_lock or NullScrollLock()
        self._pressed_at: Optional[float] = None
        self._on_fire: Optional[Callable[[], None]] = None
        self._active = False

    @property
    def is_pending(self) -> bool:
        return self._pressed_at is not None

    @property
    def is_active(self) -> bool:
        return self._active

    def touch_start(self, at_ms: float, on_fire: Callable[[], None]) -> None:
        """Arm the gate; an earlier pending press is replaced."""
        self._pressed_at = at_ms
        self._on_fire = on_fire

    def tick(self, now_ms: float) -> bool:
        """Fire the pending press once it has been held long enough."""
        if self._pressed_at is None or now_ms - self._pressed_at < self.hold_ms:
            return False
        on_fire = self._on_fire
        self._pressed_at = None
        self._on_fire = None
        self._active = True
        self.scroll_lock.suppress()
        logger.debug("Long press fired after %.0f ms", self.hold_ms)
        if on_fire is not None:
            on_fire()
        return True

    def touch_move(self, now_ms: float) -> bool:
        """
        Handle finger movement.

        Returns True when the movement belongs to an active drag and should be
        forwarded to the selection; a press that has not fired yet is cancelled.
        """
        self.tick(now_ms)
        if self._active:
            return True
        if self._pressed_at is not None:
            self._clear_pending()
        return False

    def touch_end(self, now_ms: float, on_release: Optional[Callable[[], None]] = None) -> bool:
        """
        Handle the finger lifting.

        Returns True when an active drag ended and ``on_release`` was called.
        """
        self.tick(now_ms)
        was_active = self._active
        self._clear_pending()
        self._active = False
        self.scroll_lock.restore()
        if was_active and on_release is not None:
            on_release()
        return was_active

    def cancel(self) -> None:
        """Drop any pending or active press. Always succeeds."""
        self._clear_pending()
        self._active = False
        self.scroll_lock.restore()

    def close(self) -> None:
        """Release the gate for good, e.g. when the grid goes away."""
        self.cancel()

    def __enter__(self) -> "LongPressGate":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _clear_pending(self) -> None:
        self._pressed_at = None
        self._on_fire = None
