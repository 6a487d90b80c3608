"""
Split session: wires the state machine, the records and the merge engine.

Two drivers use one session:
- the event driver calls ``advance()`` for every trigger
- the render driver calls ``frame()`` on every tick

Finishing a run never writes to disk while the state lock is held. The
finished snapshot goes to a finalizer thread, which merges and persists it
and only then moves the machine back to Idle.

Usage::

    store = RecordStore(data_dir(), "celeste")
    session = SplitSession.open(store)
    session.advance()        # start
    session.advance()        # split
    rows = session.frame().rows
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, NamedTuple, Optional, Sequence

from speedy.clock import Clock
from speedy.compare import Summary, build_rows, format_time, summarize
from speedy.merge import finalize
from speedy.protocol import MergeResult, Run, RunStatus, SectionRow, SpeedyError
from speedy.records import RecordStore
from speedy.run_state import RunStateMachine, SplitResult, Transition


class Frame(NamedTuple):
    run: Run
    rows: list[SectionRow]
    summary: Summary


class SplitSession:
    """Live timer for one game backed by a RecordStore."""

    def __init__(
        self,
        store: RecordStore,
        names: Sequence[str],
        *,
        pb: Optional[Run] = None,
        sum_of_best: Optional[Run] = None,
        clock: Optional[Clock] = None,
        now_fn: Callable[[], datetime] = datetime.now,
        background: bool = True,
    ):
        self.store = store
        self.machine = RunStateMachine(store.game, names, clock=clock, now_fn=now_fn)
        self.background = background

        # Records are swapped by the finalizer; readers copy the references.
        self._records_lock = threading.Lock()
        self._pb = pb
        self._sum_of_best = sum_of_best

        self._worker: Optional[threading.Thread] = None
        self._pending: Optional[Run] = None
        self.last_result: Optional[MergeResult] = None
        self.last_error: Optional[BaseException] = None

        # Hooks -- all optional, defaults do nothing
        self.on_cue: Callable[[str], None] = lambda kind: None
        self.on_finalized: Callable[[MergeResult], None] = lambda result: None

    @classmethod
    def open(cls, store: RecordStore, **kwargs) -> SplitSession:
        """Load the section config and both records for *store*'s game."""
        names = store.load_sections()
        pb, sum_of_best = store.load(names)
        return cls(store, names, pb=pb, sum_of_best=sum_of_best, **kwargs)

    @property
    def pb(self) -> Optional[Run]:
        with self._records_lock:
            return self._pb

    @property
    def sum_of_best(self) -> Optional[Run]:
        with self._records_lock:
            return self._sum_of_best

    @property
    def pending(self) -> Optional[Run]:
        """Finished run whose records failed to persist, if any."""
        return self._pending

    # -- Event driver --------------------------------------------------------

    def advance(self) -> SplitResult:
        """Start or split; while a failed save is pending, retry it instead."""
        result = self.machine.advance()
        run = result.run
        if result.transition == Transition.IGNORED:
            pending = self._pending
            if pending is not None and not self._finalizing():
                print(f"[RETRY] saving run {pending.started_at}")
                self._submit(pending)
        elif result.transition == Transition.STARTED:
            print(f"[START] {self.store.game} {run.started_at}")
            self.on_cue("start")
            self._log({"event": "start", "started_at": run.started_at})
        elif result.transition in (Transition.SPLIT, Transition.FINISHED):
            finished = result.transition == Transition.FINISHED
            print(f"[SPLIT] {result.name} {format_time(result.cumulative_ms)}")
            self.on_cue("finish" if finished else "split")
            self._log({
                "event": "split", "started_at": run.started_at,
                "index": result.index, "section": result.name,
                "time": result.cumulative_ms,
            })
            if finished:
                self._submit(run)
        return result

    def _log(self, entry: dict) -> None:
        # The event log is auxiliary; a failed append must not block a split.
        try:
            self.store.log_event(entry)
        except OSError as exc:
            print(f"[WARN] event log: {exc}")

    # -- Render driver -------------------------------------------------------

    def frame(self) -> Frame:
        """Refresh the live section and derive display values."""
        run = self.machine.snapshot(refresh=True)
        with self._records_lock:
            pb, sum_of_best = self._pb, self._sum_of_best
        return Frame(run, build_rows(run, pb, sum_of_best), summarize(run, pb, sum_of_best))

    # -- Finalization --------------------------------------------------------

    def _finalizing(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _submit(self, run: Run) -> None:
        if not self.background:
            self._finalize(run)
            return
        self._worker = threading.Thread(
            target=self._finalize, args=(run,), name="speedy-finalize")
        self._worker.start()

    def _finalize(self, run: Run) -> Optional[MergeResult]:
        with self._records_lock:
            pb, sum_of_best = self._pb, self._sum_of_best
        try:
            result = finalize(run, pb, sum_of_best, self.store)
        except (OSError, SpeedyError) as exc:
            self._pending = run
            self.last_error = exc
            print(f"[ERROR] saving run {run.started_at} failed: {exc}")
            if not self.background:
                raise
            return None

        with self._records_lock:
            self._pb = result.pb
            self._sum_of_best = result.sum_of_best
        self._pending = None
        self.last_error = None
        self.last_result = result
        self.machine.release()

        if result.is_new_pb:
            print(f"[PB] {format_time(result.final_ms)}")
        print(f"[SAVED] {result.history_path}")
        self._log({
            "event": "run_complete", "started_at": run.started_at,
            "time": result.final_ms, "is_pb": result.is_new_pb,
        })
        self.on_finalized(result)
        return result

    def retry_finalize(self) -> Optional[MergeResult]:
        """Persist the run whose earlier finalization failed, synchronously.

        Raises the persistence error again if it still fails.
        """
        run = self._pending
        if run is None:
            return None
        background, self.background = self.background, False
        try:
            return self._finalize(run)
        finally:
            self.background = background

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the finalizer thread is done; False on timeout."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    @property
    def finished(self) -> bool:
        return self.machine.status == RunStatus.FINISHED
