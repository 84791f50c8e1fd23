"""
Tests for the touch long-press gate.
"""

import pytest

from pcbooking.domain.long_press import LongPressGate, NullScrollLock


class Recorder:
    def __init__(self):
        self.fired = 0
        self.released = 0

    def fire(self):
        self.fired += 1

    def release(self):
        self.released += 1


@pytest.fixture
def lock():
    return NullScrollLock()


@pytest.fixture
def gate(lock):
    return LongPressGate(scroll_lock=lock, hold_ms=500)


class TestLongPressGate:
    """Tests for LongPressGate."""

    def test_fires_after_hold(self, gate, lock):
        recorder = Recorder()
        gate.touch_start(0, recorder.fire)

        assert not gate.tick(499)
        assert gate.tick(500)
        assert recorder.fired == 1
        assert gate.is_active
        assert lock.suppressed

    def test_fires_only_once(self, gate):
        recorder = Recorder()
        gate.touch_start(0, recorder.fire)
        gate.tick(600)
        gate.tick(700)

        assert recorder.fired == 1

    def test_early_move_cancels(self, gate, lock):
        recorder = Recorder()
        gate.touch_start(0, recorder.fire)

        assert not gate.touch_move(200)
        assert not gate.tick(1000)
        assert recorder.fired == 0
        assert not lock.suppressed

    def test_move_after_fire_is_forwarded(self, gate):
        recorder = Recorder()
        gate.touch_start(0, recorder.fire)

        assert gate.touch_move(800)
        assert recorder.fired == 1

    def test_early_lift_is_a_tap(self, gate, lock):
        recorder = Recorder()
        gate.touch_start(0, recorder.fire)

        assert not gate.touch_end(100, recorder.release)
        assert recorder.fired == 0
        assert recorder.released == 0
        assert not gate.is_pending

    def test_lift_after_fire_releases_and_restores_scroll(self, gate, lock):
        recorder = Recorder()
        gate.touch_start(0, recorder.fire)
        gate.tick(500)

        assert gate.touch_end(900, recorder.release)
        assert recorder.released == 1
        assert not gate.is_active
        assert not lock.suppressed

    def test_cancel_restores_scroll(self, gate, lock):
        gate.touch_start(0, lambda: None)
        gate.tick(500)

        gate.cancel()

        assert not gate.is_active
        assert not lock.suppressed

    def test_context_exit_restores_scroll(self, lock):
        with LongPressGate(scroll_lock=lock) as gate:
            gate.touch_start(0, lambda: None)
            gate.tick(500)
            assert lock.suppressed

        assert not lock.suppressed

    def test_new_touch_replaces_pending(self, gate):
        first, second = Recorder(), Recorder()
        gate.touch_start(0, first.fire)
        gate.touch_start(300, second.fire)

        assert not gate.tick(600)
        assert gate.tick(800)
        assert (first.fired, second.fired) == (0, 1)

    def test_hold_must_be_positive(self):
        with pytest.raises(ValueError):
            LongPressGate(hold_ms=0)
