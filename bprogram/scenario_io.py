from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bprogram.event_sink import EventSink
from bprogram.events import ANY, Event, EventPattern
from bprogram.models import BThread, LastEventAccessor
from bprogram.program import BProgram, EngineOptions
from bprogram.statement import SyncStatement, ValidationError, sync

ANY_TOKEN = "*"


class InputFormatError(ValueError):
    """Raised when a scenario file fails validation."""


@dataclass(frozen=True)
class ScenarioBThread:
    name: str
    priority: float
    steps: tuple[SyncStatement, ...]
    # Restart from the first step after the last one, forever.
    repeat: bool = False


@dataclass(frozen=True)
class ScenarioOptions:
    # Safety cap passed to EngineOptions.max_rounds.
    max_rounds: int | None = None


@dataclass(frozen=True)
class Scenario:
    bthreads: list[ScenarioBThread]
    # External events injected with BProgram.request() after the first run().
    requests: list[str] = field(default_factory=list)
    options: ScenarioOptions = ScenarioOptions()


def load_scenario(path: Path) -> Scenario:
    """Load and validate a scripted scenario.

    Format:
      {
        "bthreads": [
          {"name": "A", "priority": 2, "steps": [{"request": "X"}, {"wait": []}]},
          {"name": "C", "priority": 5, "steps": [{"request": "FOO"}], "repeat": true},
          {"name": "D", "priority": 1, "steps": [{"block": ["FOO"]}]}
        ],
        "requests": ["PING"],
        "options": {"max_rounds": 100}
      }

    Step values:
      - request: kind string, {"kind": str, "payload": any}, or an array of them
      - wait / block: kind string or array of kind strings; "*" matches any event
      - payload: attached to string requests of that step
    """

    if not path.exists():
        raise InputFormatError(f"file not found: {path}")
    if not path.is_file():
        raise InputFormatError(f"not a file: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e

    return parse_scenario(raw)


def parse_scenario(raw: object) -> Scenario:
    if not isinstance(raw, dict):
        raise InputFormatError("root must be a JSON object")

    bthreads_raw = raw.get("bthreads")
    if not isinstance(bthreads_raw, list) or not bthreads_raw:
        raise InputFormatError("bthreads must be a non-empty array")

    bthreads: list[ScenarioBThread] = []
    for i, item in enumerate(bthreads_raw):
        if not isinstance(item, dict):
            raise InputFormatError(f"bthreads[{i}] must be an object")
        bthreads.append(_parse_bthread(item, label=f"bthreads[{i}]"))

    requests_raw = raw.get("requests", [])
    if not isinstance(requests_raw, list):
        raise InputFormatError("requests must be an array of kind strings")
    requests: list[str] = []
    for i, kind in enumerate(requests_raw):
        if not isinstance(kind, str) or not kind.strip():
            raise InputFormatError(f"requests[{i}] must be a non-empty string")
        requests.append(kind)

    options = _parse_options(raw.get("options", {}))
    return Scenario(bthreads=bthreads, requests=requests, options=options)


def _parse_bthread(raw: dict[str, Any], *, label: str) -> ScenarioBThread:
    name = raw.get("name")
    priority = raw.get("priority")
    if not isinstance(name, str) or not name.strip():
        raise InputFormatError(f"{label}.name must be a non-empty string")
    # bool is an int subclass; reject it explicitly.
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        raise InputFormatError(f"{label}.priority must be a number")

    steps_raw = raw.get("steps")
    if not isinstance(steps_raw, list):
        raise InputFormatError(f"{label}.steps must be an array")
    steps = tuple(
        _parse_step(step, label=f"{label}.steps[{i}]") for i, step in enumerate(steps_raw)
    )

    repeat = raw.get("repeat", False)
    if not isinstance(repeat, bool):
        raise InputFormatError(f"{label}.repeat must be a boolean when provided")
    if repeat and not steps:
        raise InputFormatError(f"{label}.repeat requires at least one step")

    return ScenarioBThread(name=name, priority=priority, steps=steps, repeat=repeat)


def _parse_step(raw: object, *, label: str) -> SyncStatement:
    if not isinstance(raw, dict):
        raise InputFormatError(f"{label} must be an object")

    unknown = set(raw) - {"request", "wait", "block", "payload"}
    if unknown:
        raise InputFormatError(f"{label} has unknown keys: {sorted(unknown)}")

    request = [
        _parse_requested(v, label=f"{label}.request[{i}]")
        for i, v in enumerate(_as_list(raw.get("request")))
    ]
    wait = [
        _parse_pattern(v, label=f"{label}.wait[{i}]") for i, v in enumerate(_as_list(raw.get("wait")))
    ]
    block = [
        _parse_pattern(v, label=f"{label}.block[{i}]") for i, v in enumerate(_as_list(raw.get("block")))
    ]

    try:
        return sync(request=request, wait=wait, block=block, payload=raw.get("payload"))
    except ValidationError as e:
        raise InputFormatError(f"{label}: {e}") from e


def _as_list(value: object) -> list[object]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _parse_requested(raw: object, *, label: str) -> str | Event:
    if isinstance(raw, str):
        if not raw.strip() or raw == ANY_TOKEN:
            raise InputFormatError(f"{label} must be a concrete event kind")
        return raw
    if isinstance(raw, dict):
        unknown = set(raw) - {"kind", "payload"}
        if unknown:
            raise InputFormatError(f"{label} has unknown keys: {sorted(unknown)}")
        kind = raw.get("kind")
        if not isinstance(kind, str) or not kind.strip() or kind == ANY_TOKEN:
            raise InputFormatError(f"{label}.kind must be a concrete event kind")
        return Event(kind=kind, payload=raw.get("payload"))
    raise InputFormatError(f"{label} must be a kind string or an object with 'kind'")


def _parse_pattern(raw: object, *, label: str) -> EventPattern:
    if not isinstance(raw, str) or not raw.strip():
        raise InputFormatError(f"{label} must be a non-empty kind string")
    if raw == ANY_TOKEN:
        return ANY
    return EventPattern.by_kind(raw)


def _parse_options(raw: object) -> ScenarioOptions:
    if raw is None:
        return ScenarioOptions()
    if not isinstance(raw, dict):
        raise InputFormatError("options must be an object")

    max_rounds = raw.get("max_rounds", None)
    if max_rounds is not None:
        if isinstance(max_rounds, bool) or not isinstance(max_rounds, int):
            raise InputFormatError("options.max_rounds must be an int when provided")
        if max_rounds < 1:
            raise InputFormatError("options.max_rounds must be >= 1 when provided")

    return ScenarioOptions(max_rounds=max_rounds)


def scripted_factory(spec: ScenarioBThread):
    """Return a b-thread factory that yields the scripted steps in order."""

    def factory(_last_event: LastEventAccessor) -> BThread:
        while True:
            for step in spec.steps:
                yield step
            if not spec.repeat:
                return

    return factory


def build_program(
    scenario: Scenario,
    *,
    event_sink: EventSink | None = None,
    max_rounds: int | None = None,
) -> BProgram:
    """Register every scripted b-thread, in file order, on a fresh program.

    max_rounds overrides the scenario's own options.max_rounds.
    """
    cap = max_rounds if max_rounds is not None else scenario.options.max_rounds
    program = BProgram(options=EngineOptions(max_rounds=cap), event_sink=event_sink)
    for spec in scenario.bthreads:
        program.add_bthread(spec.name, spec.priority, scripted_factory(spec))
    return program
