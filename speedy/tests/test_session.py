"""Tests for speedy.session module."""
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from speedy.clock import ManualClock
from speedy.protocol import ConfigMismatch, Indicator, Run, RunStatus
from speedy.records import RecordStore
from speedy.run_state import Transition
from speedy.session import SplitSession

NAMES = ("A", "B", "C")


class StepNow:
    """datetime source that moves one minute per call."""

    def __init__(self):
        self.now = datetime(2026, 10, 18, 12, 0, 0)

    def __call__(self):
        value = self.now
        self.now += timedelta(minutes=1)
        return value


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as td:
        s = RecordStore(Path(td), "game")
        s.save_sections(NAMES)
        yield s


def make_session(store, clock, **kwargs):
    kwargs.setdefault("background", False)
    return SplitSession.open(store, clock=clock, now_fn=StepNow(), **kwargs)


def play(session, clock, times):
    assert session.advance().transition == Transition.STARTED
    for t in times:
        clock.set(t)
        result = session.advance()
    return result


class TestScenarios:
    def test_first_run_sets_all_records(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        result = play(session, clock, [10000, 22000, 31000])
        assert result.transition == Transition.FINISHED
        merged = session.last_result
        assert merged.is_new_pb is True
        assert merged.sum_of_best.times == [10000, 22000, 31000]
        pb, sob = store.load(NAMES)
        assert pb.times == [10000, 22000, 31000]
        assert sob.times == [10000, 22000, 31000]
        assert len(store.list_history()) == 1

    def test_faster_run_improves_records(self, store):
        store.persist_pb(Run.from_times("game", NAMES, [10000, 25000, 40000]))
        store.persist_sum_of_best(Run.from_times("game", NAMES, [9000, 23000, 38000]))
        clock = ManualClock()
        session = make_session(store, clock)
        play(session, clock, [9500, 23500, 37000])
        assert session.last_result.is_new_pb is True
        pb, sob = store.load(NAMES)
        assert pb.times == [9500, 23500, 37000]
        assert sob.times == [9000, 23000, 36500]

    def test_stray_split_after_finish(self, store):
        clock = ManualClock()
        session = make_session(store, clock, background=True)
        release = threading.Event()
        original = store.persist_sum_of_best

        def slow_persist(run):
            release.wait(5)
            return original(run)

        store.persist_sum_of_best = slow_persist
        play(session, clock, [100, 200, 300])
        assert session.finished
        before = session.machine.snapshot()
        clock.set(400)
        stray = session.advance()
        assert stray.transition == Transition.IGNORED
        assert session.machine.snapshot() == before
        release.set()
        assert session.wait(5)
        assert len(store.list_history()) == 1
        assert session.machine.status == RunStatus.IDLE


class TestLifecycle:
    def test_returns_to_idle_after_finalize(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        play(session, clock, [1000, 2000, 3000])
        assert session.machine.status == RunStatus.IDLE
        assert session.frame().run.times == [1000, 2000, 3000]

    def test_second_run_compares_against_new_records(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        play(session, clock, [10000, 22000, 31000])
        session.advance()
        clock.set(9000)
        session.advance()
        frame = session.frame()
        assert frame.rows[0].delta_total == "(-0:01)"
        assert frame.rows[0].indicator == Indicator.AHEAD_OF_BEST
        assert session.pb.times == [10000, 22000, 31000]

    def test_slower_second_run_keeps_pb(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        play(session, clock, [10000, 22000, 31000])
        play(session, clock, [9000, 23000, 33000])
        assert session.last_result.is_new_pb is False
        assert store.load_pb(NAMES).times == [10000, 22000, 31000]
        assert store.load_sum_of_best(NAMES).times == [9000, 21000, 30000]
        assert len(store.list_history()) == 2

    def test_events_logged(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        play(session, clock, [1, 2, 3])
        kinds = [e["event"] for e in store.iter_events()]
        assert kinds == ["start", "split", "split", "split", "run_complete"]

    def test_cues(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        cues = []
        session.on_cue = cues.append
        play(session, clock, [1, 2, 3])
        assert cues == ["start", "split", "split", "finish"]

    def test_on_finalized_hook(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        results = []
        session.on_finalized = results.append
        play(session, clock, [1, 2, 3])
        assert len(results) == 1 and results[0].final_ms == 3


class TestFrame:
    def test_live_refresh_each_frame(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        session.advance()
        clock.set(1500)
        session.advance()
        clock.set(2500)
        frame = session.frame()
        assert frame.run.times == [1500, 2500, None]
        assert frame.rows[1].live is True
        clock.set(4000)
        assert session.frame().run.times == [1500, 4000, None]

    def test_frame_does_not_commit(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        session.advance()
        for t in (100, 200, 300):
            clock.set(t)
            session.frame()
        assert session.machine.snapshot().current_index == 0
        assert store.list_history() == []


class TestFailures:
    def test_persist_failure_keeps_run(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        original = store.persist_history

        def broken(run):
            raise OSError("disk full")

        store.persist_history = broken
        with pytest.raises(OSError):
            play(session, clock, [10, 20, 30])
        assert session.finished
        assert session.pending.times == [10, 20, 30]
        assert isinstance(session.last_error, OSError)

        store.persist_history = original
        result = session.retry_finalize()
        assert result.is_new_pb is True
        assert session.pending is None
        assert session.machine.status == RunStatus.IDLE
        assert len(store.list_history()) == 1

    def test_background_failure_recorded(self, store):
        clock = ManualClock()
        session = make_session(store, clock, background=True)

        def broken(run):
            raise OSError("read-only")

        store.persist_history = broken
        play(session, clock, [10, 20, 30])
        assert session.wait(5)
        assert session.finished
        assert session.pending is not None
        assert isinstance(session.last_error, OSError)

    def test_retry_without_pending(self, store):
        session = make_session(store, ManualClock())
        assert session.retry_finalize() is None

    def test_open_rejects_mismatched_pb(self, store):
        store.persist_pb(Run.from_times("game", ("A", "B"), [1, 2]))
        with pytest.raises(ConfigMismatch):
            SplitSession.open(store)

    def test_retry_after_partial_save_keeps_one_history(self, store):
        clock = ManualClock()
        session = make_session(store, clock)
        original = store.persist_sum_of_best

        def broken(run):
            raise OSError("disk full")

        store.persist_sum_of_best = broken
        with pytest.raises(OSError):
            play(session, clock, [10, 20, 30])
        assert len(store.list_history()) == 1

        store.persist_sum_of_best = original
        session.retry_finalize()
        assert session.pending is None
        assert len(store.list_history()) == 1
        assert store.load_sum_of_best(NAMES).times == [10, 20, 30]

    def test_advance_retries_pending_save(self, store):
        clock = ManualClock()
        session = make_session(store, clock, background=True)
        original = store.persist_history

        def broken(run):
            raise OSError("read-only")

        store.persist_history = broken
        play(session, clock, [10, 20, 30])
        assert session.wait(5)
        assert session.pending is not None

        store.persist_history = original
        assert session.advance().transition == Transition.IGNORED
        assert session.wait(5)
        assert session.pending is None
        assert session.machine.status == RunStatus.IDLE
        assert len(store.list_history()) == 1
        assert session.advance().transition == Transition.STARTED
