from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from bprogram.events import Event, EventPattern, PatternTag

STATEMENT_KEYS = frozenset({"request", "wait", "block", "payload"})


class ValidationError(ValueError):
    """Raised when a b-thread yields a statement that cannot be normalized."""


@dataclass(frozen=True, slots=True)
class SyncStatement:
    """
    The declarative output of one b-thread step.

    Fields are always tuples here; scalar forms are accepted only by sync()
    and normalize_statement(), which build instances of this class.
    """

    request: tuple[Event, ...] = ()
    wait: tuple[EventPattern, ...] = ()
    block: tuple[EventPattern, ...] = ()

    def wakes_on(self, event: Event) -> bool:
        """True if the event matches a requested kind or a waited-for pattern."""
        if any(r.kind == event.kind for r in self.request):
            return True
        return any(p.matches(event) for p in self.wait)

    def blocks(self, event: Event) -> bool:
        return any(p.matches(event) for p in self.block)


def sync(request: Any = (), wait: Any = (), block: Any = (), payload: Any = None) -> SyncStatement:
    """
    Build a normalized statement from loose values.

    Each field takes a single value or a list/tuple of values:
      - request: kind strings, Events or by-kind patterns. Kind strings and
        by-kind patterns become Events carrying `payload`.
      - wait / block: kind strings, Events (matched by kind), predicates or
        EventPatterns.
    """
    return SyncStatement(
        request=tuple(_as_event(v, payload, label=f"request[{i}]") for i, v in enumerate(_as_sequence(request))),
        wait=tuple(_as_pattern(v, label=f"wait[{i}]") for i, v in enumerate(_as_sequence(wait))),
        block=tuple(_as_pattern(v, label=f"block[{i}]") for i, v in enumerate(_as_sequence(block))),
    )


def normalize_statement(raw: object) -> SyncStatement:
    """Normalize whatever a b-thread yielded. Idempotent on SyncStatement."""
    if isinstance(raw, SyncStatement):
        return raw
    if raw is None:
        raise ValidationError("statement must not be None (did the b-thread yield without a value?)")
    if not isinstance(raw, Mapping):
        raise ValidationError(
            f"statement must be a SyncStatement or a mapping, got {type(raw).__name__}"
        )

    unknown = set(raw) - STATEMENT_KEYS
    if unknown:
        raise ValidationError(
            f"unknown statement keys: {sorted(map(str, unknown))} (expected {sorted(STATEMENT_KEYS)})"
        )

    return sync(
        request=_or_empty(raw.get("request")),
        wait=_or_empty(raw.get("wait")),
        block=_or_empty(raw.get("block")),
        payload=raw.get("payload"),
    )


def _or_empty(value: object) -> object:
    return () if value is None else value


def _as_sequence(value: object) -> tuple[object, ...]:
    # Only ordered containers are expanded; everything else is a scalar entry.
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def _as_kind(value: object, *, label: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{label}: event kind must be a string, got {type(value).__name__}")
    if not value.strip():
        raise ValidationError(f"{label}: event kind must be a non-empty string")
    return value


def _as_event(value: object, payload: Any, *, label: str) -> Event:
    if isinstance(value, Event):
        return value
    if isinstance(value, str):
        return Event(kind=_as_kind(value, label=label), payload=payload)
    if isinstance(value, EventPattern):
        if value.tag != PatternTag.BY_KIND:
            raise ValidationError(f"{label}: a predicate pattern cannot be requested")
        return Event(kind=_as_kind(value.kind, label=label), payload=payload)
    if callable(value):
        raise ValidationError(f"{label}: a predicate cannot be requested")
    raise ValidationError(
        f"{label}: expected an Event, a kind string or a by-kind pattern, got {type(value).__name__}"
    )


def _as_pattern(value: object, *, label: str) -> EventPattern:
    if isinstance(value, EventPattern):
        return value
    if isinstance(value, str):
        return EventPattern.by_kind(_as_kind(value, label=label))
    if isinstance(value, Event):
        return EventPattern.by_kind(value.kind)
    if callable(value):
        return EventPattern.by_predicate(value)
    raise ValidationError(
        f"{label}: expected an EventPattern, a kind string, an Event or a predicate, "
        f"got {type(value).__name__}"
    )
