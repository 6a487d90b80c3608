"""Tests for speedy.clock module."""
import pytest

from speedy.clock import Clock, ManualClock


class FakeTime:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class TestClock:
    def test_elapsed_ms_since_reset(self):
        t = FakeTime(100.0)
        clock = Clock(t)
        t.now = 101.5
        assert clock.elapsed_ms() == 1500

    def test_reset_moves_epoch(self):
        t = FakeTime(100.0)
        clock = Clock(t)
        t.now = 110.0
        clock.reset()
        t.now = 112.25
        assert clock.elapsed_ms() == 2250

    def test_truncates_to_whole_ms(self):
        t = FakeTime(0.0)
        clock = Clock(t)
        t.now = 0.0019
        assert clock.elapsed_ms() == 1

    def test_never_negative(self):
        t = FakeTime(100.0)
        clock = Clock(t)
        t.now = 99.0
        assert clock.elapsed_ms() == 0

    def test_default_source_is_monotonic(self):
        clock = Clock()
        first = clock.elapsed_ms()
        assert clock.elapsed_ms() >= first >= 0


class TestManualClock:
    def test_advance(self):
        clock = ManualClock()
        clock.advance(1234)
        assert clock.elapsed_ms() == 1234

    def test_reset(self):
        clock = ManualClock()
        clock.advance(5000)
        clock.reset()
        clock.advance(250)
        assert clock.elapsed_ms() == 250

    def test_set_relative_to_epoch(self):
        clock = ManualClock()
        clock.advance(1000)
        clock.reset()
        clock.set(22000)
        assert clock.elapsed_ms() == 22000

    def test_backwards_raises(self):
        clock = ManualClock()
        clock.set(500)
        with pytest.raises(ValueError):
            clock.set(100)
        with pytest.raises(ValueError):
            clock.advance(-1)
