"""
Unit tests for calmflow.services.timer module.
"""
import pytest
from calmflow.services.timer import CountdownTimer, Tick


class TestCountdownTimer:
    """Test the single-shot countdown."""

    def test_yields_one_tick_per_second(self):
        """Test that a 3 second countdown yields 2, 1, 0 and completes on the last tick."""
        ticks = list(CountdownTimer().start(3))

        assert ticks == [Tick(2), Tick(1), Tick(0, completed=True)]

    def test_completion_lands_with_final_tick(self):
        timer = CountdownTimer()
        ticks = timer.start(1)
        event = next(ticks)

        assert event.remaining == 0
        assert event.completed is True
        assert timer.done is True
        assert next(ticks, None) is None

    def test_lazy_until_driven(self):
        """Test that nothing elapses until the iterator is driven."""
        timer = CountdownTimer()
        timer.start(5)
        assert timer.remaining == 5

    def test_remaining_observable(self):
        timer = CountdownTimer()
        ticks = timer.start(4)
        next(ticks)
        next(ticks)
        assert timer.remaining == 2

    def test_single_shot(self):
        timer = CountdownTimer()
        timer.start(2)
        with pytest.raises(RuntimeError, match="single-shot"):
            timer.start(2)

    @pytest.mark.parametrize("seconds", [0, -1, 1.5, "3"])
    def test_rejects_non_positive_or_non_int(self, seconds):
        with pytest.raises(ValueError):
            CountdownTimer().start(seconds)


class TestCountdownCancel:
    """Test cancel semantics."""

    def test_cancel_stops_ticks_and_suppresses_completion(self):
        timer = CountdownTimer()
        ticks = timer.start(5)
        next(ticks)
        timer.cancel()

        assert next(ticks, None) is None
        assert timer.cancelled is True
        assert timer.remaining == 4

    def test_cancel_is_idempotent(self):
        timer = CountdownTimer()
        timer.start(3)
        timer.cancel()
        timer.cancel()
        assert timer.cancelled is True

    def test_cancel_before_start(self):
        """Test cancel is safe before start."""
        timer = CountdownTimer()
        timer.cancel()
        assert timer.cancelled is True
        assert timer.remaining == 0

    def test_cancel_after_completion(self):
        timer = CountdownTimer()
        list(timer.start(2))
        timer.cancel()
        assert timer.remaining == 0

    def test_remaining_never_negative(self):
        timer = CountdownTimer()
        ticks = timer.start(2)
        for _ in range(5):
            next(ticks, None)
        assert timer.remaining == 0
