"""Tests for the host clocks."""

from dialogue_engine.engine.clock import FrameClock, ManualClock


class TestManualClock:
    """Test the explicitly advanced clock."""

    def test_timers_fire_in_due_order(self):
        """Test that timers fire by due time, then by scheduling order."""
        clock = ManualClock()
        fired = []
        clock.schedule(2.0, lambda: fired.append("late"))
        clock.schedule(1.0, lambda: fired.append("first"))
        clock.schedule(1.0, lambda: fired.append("second"))

        assert clock.advance(5) == 3
        assert fired == ["first", "second", "late"]
        assert clock.now() == 5

    def test_cancel(self):
        """Test that a cancelled timer never fires and is not pending."""
        clock = ManualClock()
        fired = []
        handle = clock.schedule(1.0, lambda: fired.append("x"))
        clock.cancel(handle)

        assert clock.pending == 0
        clock.advance(2)
        assert fired == []

    def test_cancel_unknown_handle_is_ignored(self):
        """Test cancelling None or an already fired handle."""
        clock = ManualClock()
        handle = clock.schedule(0, lambda: None)
        clock.advance(0)

        clock.cancel(handle)
        clock.cancel(None)
        assert clock.pending == 0

    def test_negative_delay_is_immediate(self):
        """Test that a negative delay is due now rather than in the past."""
        clock = ManualClock(start=10)
        clock.schedule(-5, lambda: None)

        assert clock.next_due() == 10

    def test_timer_scheduled_by_callback(self):
        """Test that a callback may schedule a timer that is already due."""
        clock = ManualClock()
        fired = []

        def chain():
            fired.append("outer")
            clock.schedule(0.5, lambda: fired.append("inner"))

        clock.schedule(1.0, chain)
        clock.advance(2)

        assert fired == ["outer", "inner"]

    def test_run_next(self):
        """Test jumping straight to the next timer."""
        clock = ManualClock()
        clock.schedule(3.0, lambda: None)

        assert clock.run_next() is True
        assert clock.now() == 3.0
        assert clock.run_next() is False


class TestFrameClock:
    """Test the clock driven by a time source."""

    def test_update_fires_due_timers(self):
        """Test that update() catches up with the time source."""
        now = [100.0]
        clock = FrameClock(time_source=lambda: now[0])
        fired = []
        clock.schedule(1.0, lambda: fired.append("tick"))

        now[0] = 100.5
        clock.update()
        assert fired == []

        now[0] = 101.0
        clock.update()
        assert fired == ["tick"]
