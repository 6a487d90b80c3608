"""Display values for a run compared against PB and sum-of-best.

Everything here is a pure function of three Run snapshots; no colours or
layout, only strings and the tri-state indicator.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from speedy.protocol import Indicator, Run, RunStatus, SectionRow

MISSING = "--:--"
MISSING_DELTA = "(--:--)"
BLANK = ""


# -- Formatting --------------------------------------------------------------

def format_time(ms: int) -> str:
    """``M:SS`` with unpadded minutes; sub-second part is truncated."""
    return f"{ms // 60000}:{(ms // 1000) % 60:02d}"


def format_delta(ms: int) -> str:
    sign = "-" if ms < 0 else "+"
    return f"({sign}{format_time(abs(ms))})"


def time_text(ms: Optional[int], index: int, current_index: int) -> str:
    if ms is not None:
        return format_time(ms)
    return MISSING if index < current_index else BLANK


def delta_text(ms: Optional[int], index: int, current_index: int) -> str:
    if ms is not None:
        return format_delta(ms)
    return MISSING_DELTA if index < current_index else BLANK


def pb_text(ms: Optional[int]) -> str:
    return format_time(ms) if ms is not None else MISSING


# -- Comparisons -------------------------------------------------------------

def delta_total(current: Run, pb: Optional[Run], index: int) -> Optional[int]:
    if pb is None:
        return None
    c, p = current.cumulative(index), pb.cumulative(index)
    if c is None or p is None:
        return None
    return c - p


def delta_section(current: Run, pb: Optional[Run], index: int) -> Optional[int]:
    if pb is None:
        return None
    c, p = current.segment(index), pb.segment(index)
    if c is None or p is None:
        return None
    return c - p


def is_gold(current: Run, sum_of_best: Optional[Run], index: int) -> bool:
    """Segment strictly faster than the best one on record."""
    if sum_of_best is None:
        return False
    seg, best = current.segment(index), sum_of_best.segment(index)
    return seg is not None and best is not None and seg < best


def loss_so_far(current: Run, sum_of_best: Optional[Run]) -> int:
    """Largest deficit to sum-of-best pace over the committed sections.

    The carry starts at zero and only moves when a later deficit is strictly
    larger, so a fast section after a slow one does not hide the loss.
    """
    loss = 0
    if sum_of_best is None:
        return loss
    for j in range(min(current.current_index, len(current))):
        c, b = current.cumulative(j), sum_of_best.cumulative(j)
        if c is None or b is None:
            continue
        if c - b > loss:
            loss = c - b
    return loss


def projected_ms(
    current: Run, sum_of_best: Optional[Run], index: int, loss: int,
) -> Optional[int]:
    """Actual time for committed sections, sum-of-best plus loss otherwise."""
    if index < current.current_index:
        return current.cumulative(index)
    if sum_of_best is None or sum_of_best.cumulative(index) is None:
        return current.cumulative(index) if index == current.current_index else None
    projection = sum_of_best.cumulative(index) + loss
    live = current.cumulative(index)
    if live is not None and live > projection:
        return live
    return projection


def indicator(current: Run, pb: Optional[Run], sum_of_best: Optional[Run], index: int) -> Indicator:
    if current.cumulative(index) is None:
        return Indicator.NORMAL
    if is_gold(current, sum_of_best, index):
        return Indicator.AHEAD_OF_BEST
    delta = delta_total(current, pb, index)
    if delta is not None and delta > 0:
        return Indicator.BEHIND
    return Indicator.NORMAL


# -- Rows --------------------------------------------------------------------

def build_rows(
    current: Run, pb: Optional[Run] = None, sum_of_best: Optional[Run] = None,
) -> list[SectionRow]:
    """One SectionRow per section of *current*."""
    ci = current.current_index
    loss = loss_so_far(current, sum_of_best)
    live_index = ci if current.status == RunStatus.RUNNING else None
    rows: list[SectionRow] = []
    for i, section in enumerate(current.sections):
        d_total = delta_total(current, pb, i)
        d_section = delta_section(current, pb, i)
        projected = projected_ms(current, sum_of_best, i, loss)
        rows.append(SectionRow(
            index=i,
            name=section.name,
            pb=pb_text(pb.cumulative(i) if pb is not None else None),
            total=time_text(section.cumulative_ms, i, ci),
            delta_total=delta_text(d_total, i, ci),
            section=time_text(current.segment(i), i, ci),
            delta_section=delta_text(d_section, i, ci),
            projected=format_time(projected) if projected is not None else BLANK,
            indicator=indicator(current, pb, sum_of_best, i),
            delta_total_ms=d_total,
            delta_section_ms=d_section,
            live=i == live_index,
        ))
    return rows


class Summary(NamedTuple):
    pb_ms: Optional[int]
    sum_of_best_ms: Optional[int]
    possible_ms: Optional[int]
    loss_ms: int


def summarize(
    current: Run, pb: Optional[Run] = None, sum_of_best: Optional[Run] = None,
) -> Summary:
    loss = loss_so_far(current, sum_of_best)
    last = len(current) - 1
    return Summary(
        pb_ms=pb.final_ms if pb is not None else None,
        sum_of_best_ms=sum_of_best.final_ms if sum_of_best is not None else None,
        possible_ms=projected_ms(current, sum_of_best, last, loss),
        loss_ms=loss,
    )


def summary_line(summary: Summary) -> str:
    def text(ms):
        return format_time(ms) if ms is not None else MISSING
    return (f"pb {text(summary.pb_ms)} | sum of best {text(summary.sum_of_best_ms)}"
            f" | possible {text(summary.possible_ms)}")
