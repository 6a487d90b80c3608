"""Merge a finished run into the PB, sum-of-best and history records.

Segment arithmetic runs on float numpy arrays so that unknown times can be
carried as NaN and missing sum-of-best segments as +inf.
"""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

import numpy as np

from speedy.protocol import MergeResult, Run, RunStatus
from speedy.records import check_sections


class RecordSink(Protocol):
    def persist_pb(self, run: Run): ...
    def persist_history(self, run: Run): ...
    def persist_sum_of_best(self, run: Run): ...


def cumulative_array(times: Sequence[Optional[int]]) -> np.ndarray:
    return np.array([np.nan if t is None else t for t in times], dtype=np.float64)


def segment_array(times: Sequence[Optional[int]]) -> np.ndarray:
    """Per-section segment times; NaN where either endpoint is unknown."""
    cumulative = cumulative_array(times)
    return np.diff(cumulative, prepend=0.0)


def is_new_pb(run: Run, pb: Optional[Run]) -> bool:
    """Strictly faster than the stored PB; ties keep the old PB."""
    final = run.final_ms
    if final is None:
        raise ValueError("run has no final time")
    if pb is None or pb.final_ms is None:
        return True
    return final < pb.final_ms


def merge_sum_of_best(run: Run, sum_of_best: Optional[Run]) -> Run:
    """Per-segment minimum of *run* and *sum_of_best*, re-accumulated."""
    run_segments = segment_array(run.times)
    if np.isnan(run_segments).any():
        raise ValueError("run has uncommitted sections")
    if sum_of_best is None:
        old_segments = np.full(len(run), np.inf)
    else:
        check_sections(sum_of_best, run.names, record="sum_of_best")
        old_segments = segment_array(sum_of_best.times)
        old_segments[np.isnan(old_segments)] = np.inf
    best = np.minimum(run_segments, old_segments)
    totals = np.cumsum(best)
    return Run.from_times(run.game, run.names, [int(round(t)) for t in totals])


def validate_finished(run: Run) -> None:
    if run.status != RunStatus.FINISHED or run.current_index != len(run):
        raise ValueError(f"run is {run.status.value}, not finished")
    if any(t is None for t in run.times):
        raise ValueError("run has uncommitted sections")
    if not run.is_monotonic():
        raise ValueError("run times decrease")


def finalize(
    run: Run,
    pb: Optional[Run],
    sum_of_best: Optional[Run],
    store: RecordSink,
) -> MergeResult:
    """Persist a finished run: PB if beaten, history always, sum-of-best always.

    *run* is only read. Persistence errors propagate; records written before
    the failure stay written.
    """
    validate_finished(run)
    if pb is not None:
        check_sections(pb, run.names, record="pb")
    new_pb = is_new_pb(run, pb)
    new_sum_of_best = merge_sum_of_best(run, sum_of_best)

    if new_pb:
        store.persist_pb(run)
    history_path = store.persist_history(run)
    store.persist_sum_of_best(new_sum_of_best)

    return MergeResult(
        is_new_pb=new_pb,
        final_ms=run.final_ms,
        pb=run.snapshot() if new_pb else pb,
        sum_of_best=new_sum_of_best,
        history_path=str(history_path) if history_path is not None else None,
    )
