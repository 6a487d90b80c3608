"""Split-timing state machine for one run at a time.

The machine is shared by the event driver (start/split) and the render
driver (live refresh + reads). Every public method takes the same lock for
the whole operation, so readers never observe an index increment without its
committed time. Nothing in here touches the disk: a split that finishes the
run hands back a snapshot and the caller persists it after the lock is gone.
"""
from __future__ import annotations

import threading
from datetime import datetime
from enum import Enum
from typing import Callable, NamedTuple, Sequence

from speedy.clock import Clock
from speedy.protocol import Run, RunStatus

HISTORY_KEY_FORMAT = "%Y-%m-%dT%H:%M:%S"


class Transition(str, Enum):
    STARTED = "started"
    SPLIT = "split"
    FINISHED = "finished"
    IGNORED = "ignored"


class SplitResult(NamedTuple):
    """Returned by every event; ``run`` is a snapshot taken under the lock."""
    transition: Transition
    index: int | None
    name: str | None
    cumulative_ms: int | None
    run: Run


class RunStateMachine:
    """Idle -> Running -> Finished -> Idle, guarded by one lock."""

    def __init__(
        self,
        game: str,
        names: Sequence[str],
        *,
        clock: Clock | None = None,
        now_fn: Callable[[], datetime] = datetime.now,
    ) -> None:
        if not names:
            raise ValueError("a run needs at least one section")
        self.game = game
        self._lock = threading.Lock()
        self._clock = clock or Clock()
        self._now_fn = now_fn
        self._run = Run.empty(game, names)

    @property
    def status(self) -> RunStatus:
        with self._lock:
            return self._run.status

    @property
    def names(self) -> tuple[str, ...]:
        return self._run.names

    # -- Events --------------------------------------------------------------

    def start(self) -> SplitResult:
        with self._lock:
            return self._start()

    def split(self) -> SplitResult:
        with self._lock:
            return self._split()

    def advance(self) -> SplitResult:
        """Single-button semantics: start when idle, split when running."""
        with self._lock:
            if self._run.status == RunStatus.IDLE:
                return self._start()
            return self._split()

    def live_refresh(self) -> None:
        with self._lock:
            self._live_refresh()

    def release(self) -> bool:
        """Return a finished run to Idle once its records are written.

        The finished times stay in place for display until the next start.
        """
        with self._lock:
            if self._run.status != RunStatus.FINISHED:
                return False
            self._run.status = RunStatus.IDLE
            return True

    def snapshot(self, *, refresh: bool = False) -> Run:
        """Copy of the current run, optionally live-refreshed first."""
        with self._lock:
            if refresh:
                self._live_refresh()
            return self._run.snapshot()

    # -- Unlocked helpers ----------------------------------------------------

    def _ignored(self) -> SplitResult:
        return SplitResult(Transition.IGNORED, None, None, None, self._run.snapshot())

    def _start(self) -> SplitResult:
        run = self._run
        if run.status != RunStatus.IDLE:
            return self._ignored()
        self._clock.reset()
        for section in run.sections:
            section.cumulative_ms = None
        run.current_index = 0
        run.started_at = self._now_fn().strftime(HISTORY_KEY_FORMAT)
        run.status = RunStatus.RUNNING
        return SplitResult(Transition.STARTED, 0, run.sections[0].name, None, run.snapshot())

    def _split(self) -> SplitResult:
        run = self._run
        if run.status != RunStatus.RUNNING:
            return self._ignored()
        index = run.current_index
        elapsed = self._clock.elapsed_ms()
        if index > 0:
            previous = run.sections[index - 1].cumulative_ms
            if previous is not None and elapsed < previous:
                elapsed = previous
        run.sections[index].cumulative_ms = elapsed
        run.current_index = index + 1
        transition = Transition.SPLIT
        if run.current_index >= len(run.sections):
            run.status = RunStatus.FINISHED
            transition = Transition.FINISHED
        return SplitResult(
            transition, index, run.sections[index].name, elapsed, run.snapshot())

    def _live_refresh(self) -> None:
        run = self._run
        if run.status != RunStatus.RUNNING or run.current_index >= len(run.sections):
            return
        run.sections[run.current_index].cumulative_ms = self._clock.elapsed_ms()
