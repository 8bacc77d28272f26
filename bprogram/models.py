from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generator

from bprogram.events import Event
from bprogram.statement import SyncStatement

# A b-thread is a generator: it yields statements and is resumed with the
# selected event.
BThread = Generator[Any, "Event | None", None]
LastEventAccessor = Callable[[], "Event | None"]
BThreadFactory = Callable[[LastEventAccessor], BThread]


@dataclass(slots=True)
class Bid:
    name: str
    # Lower value wins. Fixed for the lifetime of the bid.
    priority: float
    bthread: BThread
    # None until the b-thread has been advanced once.
    statement: SyncStatement | None = None

    @property
    def started(self) -> bool:
        return self.statement is not None
