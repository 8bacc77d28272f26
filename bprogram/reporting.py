from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from bprogram.event_sink import TraceRecord, TraceType


@dataclass(frozen=True, slots=True)
class RoundRow:
    """
    A single round, represented as a ROUND_START → (EVENT_SELECTED | QUIESCENT)
    span. selected is None for the quiescent round that ends a super-step.
    """
    round: int
    selected: str | None
    priority: float | None
    advanced: tuple[str, ...]
    completed: tuple[str, ...]
    woken: tuple[str, ...]
    records: tuple[TraceRecord, ...]


@dataclass(frozen=True, slots=True)
class SuperStepFrame:
    """
    A grouping of RoundRows closed by a quiescent round.
    Frame indices start at 1.
    """
    super_step_index: int
    rows: tuple[RoundRow, ...]


def derive_round_rows(records: Iterable[TraceRecord]) -> list[RoundRow]:
    """
    Derive one row per round from an ordered record stream.

    Rule:
      - A row begins at ROUND_START
      - All records up to the next ROUND_START are attached to the row
      - A round that never reached selection (e.g. aborted) still yields a row
    """
    rows: list[RoundRow] = []
    buffer: list[TraceRecord] = []

    for r in records:
        if r.type == TraceType.ROUND_START and buffer:
            rows.append(_row_from(buffer))
            buffer = []
        buffer.append(r)

    if buffer:
        rows.append(_row_from(buffer))
    return rows


def _row_from(records: list[TraceRecord]) -> RoundRow:
    selected: str | None = None
    priority: float | None = None
    advanced: list[str] = []
    completed: list[str] = []
    woken: list[str] = []

    for r in records:
        if r.type == TraceType.BID_ADVANCED and r.bthread is not None:
            advanced.append(r.bthread)
        elif r.type == TraceType.BID_COMPLETED and r.bthread is not None:
            completed.append(r.bthread)
        elif r.type == TraceType.EVENT_SELECTED:
            selected = str(r.data.get("kind"))
            priority = r.data.get("priority")
        elif r.type == TraceType.BIDS_WOKEN:
            woken.extend(str(n) for n in r.data.get("woken", []))

    return RoundRow(
        round=records[0].round,
        selected=selected,
        priority=priority,
        advanced=tuple(advanced),
        completed=tuple(completed),
        woken=tuple(woken),
        records=tuple(records),
    )


def is_quiescent(row: RoundRow) -> bool:
    return any(r.type == TraceType.QUIESCENT for r in row.records)


def group_rows_into_super_steps(rows: Iterable[RoundRow]) -> list[SuperStepFrame]:
    """
    Group RoundRows into SuperStepFrames.

    A frame is closed when a quiescent row is appended. Trailing rows without
    a quiescent round (an aborted super-step) form no frame.
    """
    frames: list[SuperStepFrame] = []
    current: list[RoundRow] = []

    for row in rows:
        current.append(row)
        if is_quiescent(row):
            frames.append(SuperStepFrame(super_step_index=len(frames) + 1, rows=tuple(current)))
            current = []

    return frames


def _fmt_priority(priority: float | None) -> str:
    if priority is None:
        return "--"
    if isinstance(priority, float) and priority.is_integer():
        return str(int(priority))
    return str(priority)


def render_text_report(frames: Iterable[SuperStepFrame]) -> str:
    out: list[str] = []
    for frame in frames:
        out.append(f"Super-step #{frame.super_step_index}")
        for row in frame.rows:
            if row.selected is None:
                out.append(f"  {row.round}: (quiescent)")
                continue
            line = f"  {row.round}: {row.selected} [priority {_fmt_priority(row.priority)}]"
            if row.woken:
                line += f" -> woke {', '.join(row.woken)}"
            out.append(line)
        out.append("")

    if not out:
        return "(No complete super-steps were recorded.)\n"
    return "\n".join(out).rstrip() + "\n"
