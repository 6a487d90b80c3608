"""
Core split-timer types shared by the state machine, merge engine and display.

A single Section/Run model is used for the live run, the PB record, the
sum-of-best record and history entries.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

RECORD_SCHEMA = 1


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class Indicator(str, Enum):
    NORMAL = "normal"
    AHEAD_OF_BEST = "ahead-of-best"
    BEHIND = "behind"


# -- Errors ------------------------------------------------------------------

class SpeedyError(Exception):
    """Base class for split timer errors."""


class RecordError(SpeedyError):
    """A persisted record could not be used."""

    def __init__(self, message: str, *, record: Optional[str] = None) -> None:
        super().__init__(message)
        self.record = record
        self.partial: Optional[Tuple[Optional[Run], Optional[Run]]] = None


class ConfigMismatch(RecordError):
    """Record section names do not match the configured section sequence."""


class RecordFormatError(RecordError):
    """Record file exists but cannot be parsed."""


class UnknownGame(RecordError):
    """No section sequence is registered for the game."""


# -- Model -------------------------------------------------------------------

@dataclass
class Section:
    """One named checkpoint; ``cumulative_ms`` is time from run start."""

    name: str
    cumulative_ms: Optional[int] = None


@dataclass
class Run:
    """Ordered sections plus run progress.

    Used both for the in-progress attempt and for stored records (PB,
    sum-of-best, history), which are always ``FINISHED``.
    """

    game: str
    sections: List[Section]
    status: RunStatus = RunStatus.IDLE
    current_index: int = 0
    started_at: Optional[str] = None

    @classmethod
    def empty(cls, game: str, names: Sequence[str]) -> Run:
        return cls(game=game, sections=[Section(name) for name in names])

    @classmethod
    def from_times(
        cls, game: str, names: Sequence[str], times: Sequence[Optional[int]],
        *, started_at: Optional[str] = None,
    ) -> Run:
        """Build a finished record from parallel name/time lists."""
        if len(names) != len(times):
            raise ValueError(f"{len(names)} names but {len(times)} times")
        return cls(
            game=game,
            sections=[Section(n, t) for n, t in zip(names, times)],
            status=RunStatus.FINISHED,
            current_index=len(names),
            started_at=started_at,
        )

    def __len__(self) -> int:
        return len(self.sections)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.sections)

    @property
    def times(self) -> List[Optional[int]]:
        return [s.cumulative_ms for s in self.sections]

    @property
    def final_ms(self) -> Optional[int]:
        if not self.sections:
            return None
        return self.sections[-1].cumulative_ms

    def cumulative(self, index: int) -> Optional[int]:
        return self.sections[index].cumulative_ms

    def segment(self, index: int) -> Optional[int]:
        """Time spent in section *index* alone, or None if unknown."""
        current = self.sections[index].cumulative_ms
        if current is None:
            return None
        if index == 0:
            return current
        previous = self.sections[index - 1].cumulative_ms
        if previous is None:
            return None
        return current - previous

    def is_monotonic(self) -> bool:
        """True when committed times never decrease."""
        committed = [t for t in self.times[: self.current_index] if t is not None]
        return all(a <= b for a, b in zip(committed, committed[1:]))

    def snapshot(self) -> Run:
        return copy.deepcopy(self)


@dataclass(frozen=True)
class SectionRow:
    """Display values for one section; the presentation picks colours."""

    index: int
    name: str
    pb: str
    total: str
    delta_total: str
    section: str
    delta_section: str
    projected: str
    indicator: Indicator = Indicator.NORMAL
    delta_total_ms: Optional[int] = None
    delta_section_ms: Optional[int] = None
    live: bool = False


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging a finished run into the stored records."""

    is_new_pb: bool
    final_ms: int
    pb: Run
    sum_of_best: Run
    history_path: Optional[str] = None
