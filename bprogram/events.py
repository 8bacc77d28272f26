from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable


@dataclass(frozen=True)
class Event:
    """
    A concrete occurrence: a kind identifier plus an opaque payload.

    selection_priority is stamped by the selector on the copy that becomes the
    program's last event. It is informational and ignored by equality.
    """

    kind: str
    payload: Any = None
    selection_priority: float | None = field(default=None, compare=False)

    def with_selection_priority(self, priority: float) -> Event:
        return replace(self, selection_priority=priority)


class PatternTag(str, Enum):
    BY_KIND = "BY_KIND"
    BY_PREDICATE = "BY_PREDICATE"


@dataclass(frozen=True, slots=True)
class EventPattern:
    """
    Matches events either by kind equality or by a predicate over the event.

    Build instances with by_kind() / by_predicate(); matches() is the only
    evaluation entry point.
    """

    tag: PatternTag
    kind: str | None = None
    predicate: Callable[[Event], bool] | None = None
    label: str | None = None

    @staticmethod
    def by_kind(kind: str) -> EventPattern:
        return EventPattern(tag=PatternTag.BY_KIND, kind=kind)

    @staticmethod
    def by_predicate(predicate: Callable[[Event], bool], label: str | None = None) -> EventPattern:
        return EventPattern(tag=PatternTag.BY_PREDICATE, predicate=predicate, label=label)

    def matches(self, event: Event) -> bool:
        if self.tag == PatternTag.BY_KIND:
            return self.kind == event.kind
        return bool(self.predicate(event))

    def __repr__(self) -> str:
        if self.tag == PatternTag.BY_KIND:
            return f"EventPattern.by_kind({self.kind!r})"
        return f"EventPattern.by_predicate({self.label or getattr(self.predicate, '__name__', '?')})"


# Match with all events
ANY = EventPattern.by_predicate(lambda e: True, label="ANY")


def describe(event: Event | None) -> str:
    """Short human-readable form used by logging and reports."""
    if event is None:
        return "-"
    if event.payload is None:
        return event.kind
    return f"{event.kind} {event.payload!r}"
