"""
Speedrun split timer.

Tracks a run through an ordered list of sections and compares it against the
personal best and the sum of best segments:
- Clock: Monotonic millisecond stopwatch
- Protocol: Section/Run model, indicators and errors
- Run State: Idle/Running/Finished state machine behind one lock
- Records: PB, sum-of-best, history and event log files
- Merge: PB detection and sum-of-best minimum merge
- Compare: Deltas, gold splits, projections and M:SS formatting
- Session: Event and render drivers around one state machine
- Events: SIGUSR1 / key triggers feeding a single event loop
- Display: pygame split table
"""

from speedy.clock import Clock, ManualClock
from speedy.protocol import (
    RECORD_SCHEMA,
    RunStatus,
    Indicator,
    Section,
    Run,
    SectionRow,
    MergeResult,
    SpeedyError,
    RecordError,
    ConfigMismatch,
    RecordFormatError,
    UnknownGame,
)
from speedy.run_state import (
    RunStateMachine,
    SplitResult,
    Transition,
)
from speedy.records import (
    RecordStore,
    append_jsonl,
    iter_jsonl,
)
from speedy.merge import (
    finalize,
    is_new_pb,
    merge_sum_of_best,
)
from speedy.compare import (
    build_rows,
    summarize,
    format_time,
    format_delta,
    loss_so_far,
)
from speedy.session import SplitSession, Frame
from speedy.events import (
    AdvanceChannel,
    EventLoop,
    install_signal_trigger,
)
# SplitDisplay and CuePlayer use pygame lazily; import from their modules

__all__ = [
    # Clock
    "Clock", "ManualClock",
    # Protocol
    "RECORD_SCHEMA", "RunStatus", "Indicator", "Section", "Run", "SectionRow",
    "MergeResult", "SpeedyError", "RecordError", "ConfigMismatch",
    "RecordFormatError", "UnknownGame",
    # Run state
    "RunStateMachine", "SplitResult", "Transition",
    # Records
    "RecordStore", "append_jsonl", "iter_jsonl",
    # Merge
    "finalize", "is_new_pb", "merge_sum_of_best",
    # Compare
    "build_rows", "summarize", "format_time", "format_delta", "loss_so_far",
    # Session
    "SplitSession", "Frame",
    # Events
    "AdvanceChannel", "EventLoop", "install_signal_trigger",
]
