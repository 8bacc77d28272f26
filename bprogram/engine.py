from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from bprogram.events import Event
from bprogram.models import Bid


@dataclass(frozen=True, slots=True)
class Candidate:
    priority: float
    event: Event
    # Name of the requesting bid (diagnostic only).
    requester: str
    # Generation order; the final tie-break.
    order: int


@dataclass(frozen=True, slots=True)
class Selection:
    candidates: tuple[Candidate, ...]
    eligible: tuple[Candidate, ...]
    selected: Event | None

    @property
    def blocked(self) -> tuple[Candidate, ...]:
        return tuple(c for c in self.candidates if c not in self.eligible)


def collect_candidates(waiting: Sequence[Bid]) -> list[Candidate]:
    """One candidate per requested event, in waiting order then request order."""
    out: list[Candidate] = []
    for bid in waiting:
        if bid.statement is None:
            continue
        for event in bid.statement.request:
            out.append(Candidate(priority=bid.priority, event=event, requester=bid.name, order=len(out)))
    return out


def is_blocked(event: Event, waiting: Sequence[Bid]) -> bool:
    """An event is blocked if any waiting bid blocks it, the requester included."""
    return any(bid.statement is not None and bid.statement.blocks(event) for bid in waiting)


def evaluate_selection(waiting: Sequence[Bid]) -> Selection:
    """
    Run the selection rules over the waiting bids and keep the intermediate sets.

    Rules:
    - Every requested event is a candidate carrying its bid's priority.
    - A candidate is eligible unless some waiting bid blocks it.
    - No eligible candidate -> nothing is selected.
    - Otherwise the lowest priority value wins.

    Tie-break (deterministic):
    - Earlier candidate wins, i.e. earlier bid in the waiting order, then
      earlier entry in that bid's request list.

    This does not mutate any bid.
    """
    candidates = collect_candidates(waiting)
    eligible = [c for c in candidates if not is_blocked(c.event, waiting)]
    if not eligible:
        return Selection(candidates=tuple(candidates), eligible=(), selected=None)

    best = min(eligible, key=lambda c: (c.priority, c.order))
    return Selection(
        candidates=tuple(candidates),
        eligible=tuple(eligible),
        selected=best.event.with_selection_priority(best.priority),
    )


def select_next_event(waiting: Sequence[Bid]) -> Event | None:
    """Pick at most one event for this round (see evaluate_selection)."""
    return evaluate_selection(waiting).selected


def partition_woken(waiting: Sequence[Bid], event: Event) -> tuple[list[Bid], list[Bid]]:
    """
    Split waiting bids into (woken, still_waiting), both in their original order.

    A bid wakes if the event matches one of its requested kinds or waited-for
    patterns.
    """
    woken: list[Bid] = []
    still_waiting: list[Bid] = []
    for bid in waiting:
        if bid.statement is not None and bid.statement.wakes_on(event):
            woken.append(bid)
        else:
            still_waiting.append(bid)
    return woken, still_waiting
