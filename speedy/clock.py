from __future__ import annotations

import time
from typing import Callable


class Clock:
    """
    Run stopwatch.
    - No background thread
    - Explicit reset sets the epoch
    - Monotonic time source, integer milliseconds
    """

    def __init__(self, time_fn: Callable[[], float] = time.monotonic):
        self._time_fn = time_fn
        self._epoch = time_fn()

    def reset(self) -> None:
        self._epoch = self._time_fn()

    def elapsed_ms(self) -> int:
        elapsed = self._time_fn() - self._epoch
        if elapsed < 0:
            return 0
        return int(elapsed * 1000)


class ManualClock(Clock):
    """Clock driven by explicit ``advance`` calls, for tests and replays."""

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms
        self._epoch_ms = start_ms

    def reset(self) -> None:
        self._epoch_ms = self._now_ms

    def elapsed_ms(self) -> int:
        return self._now_ms - self._epoch_ms

    def advance(self, ms: int) -> None:
        if ms < 0:
            raise ValueError("clock cannot move backwards")
        self._now_ms += ms

    def set(self, ms: int) -> None:
        """Jump to *ms* milliseconds after the current epoch."""
        self.advance(self._epoch_ms + ms - self._now_ms)
