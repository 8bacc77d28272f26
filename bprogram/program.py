from __future__ import annotations

import inspect
import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from bprogram.engine import evaluate_selection, partition_woken
from bprogram.event_sink import EventSink, TraceType
from bprogram.events import ANY, Event, describe
from bprogram.models import Bid, BThreadFactory, LastEventAccessor
from bprogram.statement import SyncStatement, ValidationError, normalize_statement

logger = logging.getLogger(__name__)


class RoundLimitExceededError(RuntimeError):
    """Raised when a super-step runs more rounds than EngineOptions.max_rounds."""


@dataclass(frozen=True)
class EngineOptions:
    # Safety cap on rounds per call to run(); None means unbounded.
    max_rounds: int | None = None
    # Priority given to bids synthesized by request(). Larger loses.
    external_priority: float = math.inf

    def __post_init__(self) -> None:
        if self.max_rounds is not None and self.max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1 when provided (got {self.max_rounds})")


class BProgram:
    """
    A behavioral program: registered b-threads plus the round loop that
    synchronizes them.

    Each instance is an independent universe. Bids are owned by exactly one
    program and live in exactly one of its two queues.
    """

    def __init__(self, options: EngineOptions | None = None, event_sink: EventSink | None = None) -> None:
        self.options = options if options is not None else EngineOptions()
        self._event_sink = event_sink
        self._ready: deque[Bid] = deque()
        self._waiting: list[Bid] = []
        self._last_event: Event | None = None
        self._running = False

    @property
    def last_event(self) -> Event | None:
        """The event selected in the current round; None between super-steps."""
        return self._last_event

    @property
    def ready_bids(self) -> tuple[Bid, ...]:
        return tuple(self._ready)

    @property
    def pending_bids(self) -> tuple[Bid, ...]:
        return tuple(self._waiting)

    def add_bthread(self, name: str, priority: float, factory: BThreadFactory) -> None:
        """
        Register a b-thread.

        factory is called once with an accessor for the last selected event and
        must return a generator. Errors raised by the factory propagate and
        nothing is registered.
        """
        def accessor() -> Event | None:
            return self._last_event

        bthread = factory(accessor)
        if not inspect.isgenerator(bthread):
            raise TypeError(
                f"b-thread factory {name!r} must return a generator, got {type(bthread).__name__}"
            )
        self._ready.append(Bid(name=name, priority=priority, bthread=bthread))
        logger.debug("registered b-thread %r (priority %s)", name, priority)

    def add_all(self, bthreads: Mapping[str, BThreadFactory], priorities: Mapping[str, float]) -> None:
        """
        Register several b-threads at once, in mapping order.

        Every name needs an entry in priorities; a missing one raises KeyError
        before anything is registered.
        """
        missing = [name for name in bthreads if name not in priorities]
        if missing:
            raise KeyError(f"no priority given for b-thread(s): {missing}")
        for name, factory in bthreads.items():
            self.add_bthread(name, priorities[name], factory)

    def request(self, event: Event | str, payload: Any = None) -> None:
        """
        Inject one external event and drive a super-step.

        A one-shot bid at options.external_priority requests the event and
        waits for anything, so it leaves after the first selected event.
        payload applies to kind strings only.
        """
        if self._running:
            raise RuntimeError("BProgram.request() called while a super-step is in progress")
        if isinstance(event, str):
            event = Event(kind=event, payload=payload)
        elif payload is not None:
            raise TypeError("payload is only accepted with a kind string; set it on the Event instead")

        statement = SyncStatement(request=(event,), wait=(ANY,))

        def _one_shot(_last_event: LastEventAccessor):
            yield statement

        self.add_bthread(f"request {event.kind}", self.options.external_priority, _one_shot)
        self.run()

    def run(self) -> None:
        """
        Run rounds until no event is selectable (one super-step).

        Each round advances every ready bid, selects at most one event and
        wakes the bids that asked for it. Not re-entrant: b-thread bodies must
        not call run() or request() on their own program.
        """
        if self._running:
            raise RuntimeError("BProgram.run() called while a super-step is in progress")
        self._running = True
        try:
            self._run_super_step()
        finally:
            self._running = False

    def _run_super_step(self) -> None:
        rounds = 0
        while True:
            rounds += 1
            if self.options.max_rounds is not None and rounds > self.options.max_rounds:
                raise RoundLimitExceededError(
                    f"super-step did not quiesce within {self.options.max_rounds} rounds"
                )

            if self._event_sink is not None:
                self._event_sink.start_round()
                self._event_sink.emit(TraceType.ROUND_START)

            # 1) advance
            self._advance_ready()

            # 2) select
            selection = evaluate_selection(self._waiting)
            selected = selection.selected
            if selected is None:
                self._last_event = None
                logger.debug(
                    "quiescent after %d round(s): %d bid(s) waiting, %d blocked candidate(s)",
                    rounds,
                    len(self._waiting),
                    len(selection.blocked),
                )
                if self._event_sink is not None:
                    self._event_sink.emit(
                        TraceType.QUIESCENT,
                        waiting=[b.name for b in self._waiting],
                        blocked=[c.event.kind for c in selection.blocked],
                    )
                return

            self._last_event = selected
            logger.debug("round %d: selected %s (priority %s)", rounds, describe(selected), selected.selection_priority)
            if self._event_sink is not None:
                self._event_sink.emit(
                    TraceType.EVENT_SELECTED,
                    kind=selected.kind,
                    payload=selected.payload,
                    priority=selected.selection_priority,
                    candidates=len(selection.candidates),
                    eligible=len(selection.eligible),
                )

            # 3) wake
            woken, self._waiting = partition_woken(self._waiting, selected)
            self._ready.extend(woken)
            if self._event_sink is not None:
                self._event_sink.emit(TraceType.BIDS_WOKEN, woken=[b.name for b in woken])

    def _advance_ready(self) -> None:
        advanced = 0
        while self._ready:
            bid = self._ready.popleft()
            try:
                raw = self._resume(bid)
            except StopIteration:
                logger.debug("b-thread %r completed", bid.name)
                if self._event_sink is not None:
                    self._event_sink.emit(TraceType.BID_COMPLETED, bthread=bid.name)
                continue

            try:
                bid.statement = normalize_statement(raw)
            except ValidationError:
                logger.warning("b-thread %r yielded an invalid statement; aborting run", bid.name)
                bid.bthread.close()
                raise

            self._waiting.append(bid)
            advanced += 1
            if self._event_sink is not None:
                self._event_sink.emit(
                    TraceType.BID_ADVANCED,
                    bthread=bid.name,
                    priority=bid.priority,
                    request=[e.kind for e in bid.statement.request],
                    wait=len(bid.statement.wait),
                    block=len(bid.statement.block),
                )
        logger.debug("advanced %d bid(s), %d waiting", advanced, len(self._waiting))

    def _resume(self, bid: Bid) -> object:
        # A just-started generator only accepts None.
        if not bid.started:
            return next(bid.bthread)
        return bid.bthread.send(self._last_event)


def bthread(
    program: BProgram, priority: float, name: str | None = None
) -> Callable[[BThreadFactory], BThreadFactory]:
    """Decorator form of BProgram.add_bthread(); the function name is the default name."""

    def decorator(func: BThreadFactory) -> BThreadFactory:
        program.add_bthread(name if name is not None else func.__name__, priority, func)
        return func

    return decorator
