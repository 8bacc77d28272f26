from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TraceType(str, Enum):
    """
    Vocabulary of diagnostic records emitted by a running program.
    These describe the scheduler, they are not BP events.
    """

    ROUND_START = "ROUND_START"
    BID_ADVANCED = "BID_ADVANCED"
    BID_COMPLETED = "BID_COMPLETED"
    EVENT_SELECTED = "EVENT_SELECTED"
    BIDS_WOKEN = "BIDS_WOKEN"
    QUIESCENT = "QUIESCENT"


@dataclass(frozen=True, slots=True)
class TraceRecord:
    """
    A structured, orderable fact emitted by the program (optionally).

    round and seq are owned by the sink (so the program keeps no history).
    """

    round: int
    seq: int
    type: TraceType
    bthread: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class EventSink(ABC):
    """
    Consumer of trace records.
    The program must be able to run with event_sink=None (no records).
    """

    @abstractmethod
    def start_round(self) -> int: ...

    @abstractmethod
    def emit(self, trace_type: TraceType, bthread: str | None = None, **data: Any) -> None: ...


@dataclass
class InMemoryEventSink(EventSink):
    """
    Simple sink for tests/demos.
    Round numbers keep increasing across super-steps.
    """

    records: list[TraceRecord] = field(default_factory=list)
    _round: int = field(default=0, init=False)
    _seq: int = field(default=0, init=False)

    @property
    def current_round(self) -> int:
        return self._round

    def start_round(self) -> int:
        self._round += 1
        self._seq = 0
        return self._round

    def emit(self, trace_type: TraceType, bthread: str | None = None, **data: object) -> None:
        if self._round <= 0:
            raise RuntimeError("EventSink.start_round() must be called before emitting records.")
        self._seq += 1
        self.records.append(
            TraceRecord(
                round=self._round,
                seq=self._seq,
                type=trace_type,
                bthread=bthread,
                data=dict(data),
            )
        )

    def of_type(self, trace_type: TraceType) -> list[TraceRecord]:
        return [r for r in self.records if r.type == trace_type]

    def in_round(self, round_number: int) -> list[TraceRecord]:
        return [r for r in self.records if r.round == round_number]

    def selected_kinds(self) -> list[str]:
        """Kinds of the selected events, in selection order across super-steps."""
        return [str(r.data["kind"]) for r in self.of_type(TraceType.EVENT_SELECTED)]
