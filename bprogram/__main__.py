from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from bprogram.event_sink import InMemoryEventSink
from bprogram.program import RoundLimitExceededError
from bprogram.reporting import derive_round_rows, group_rows_into_super_steps, render_text_report
from bprogram.scenario_io import InputFormatError, build_program, load_scenario
from bprogram.statement import ValidationError


def _cmd_run(args: argparse.Namespace) -> int:
    if args.max_rounds is not None and args.max_rounds < 1:
        print(f"ERROR: --max-rounds must be >= 1 (got {args.max_rounds})", file=sys.stderr)
        return 2

    try:
        scenario = load_scenario(Path(str(args.scenario)))
    except InputFormatError as e:
        print(f"ERROR: invalid scenario: {e}", file=sys.stderr)
        return 2

    sink = InMemoryEventSink()
    program = build_program(scenario, event_sink=sink, max_rounds=args.max_rounds)

    requests = list(scenario.requests) + list(args.request or [])
    try:
        program.run()
        for kind in requests:
            program.request(kind)
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except RoundLimitExceededError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    frames = group_rows_into_super_steps(derive_round_rows(sink.records))
    sys.stdout.write(render_text_report(frames))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="bprogram",
        description=(
            "Behavioral Programming engine — scenario runner.\n"
            "\n"
            "Runs scripted b-threads and prints the selected event of every round,\n"
            "grouped into super-steps."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Root logging level (DEBUG shows every round).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a scenario file and print its super-steps.")
    run.add_argument("--scenario", type=str, required=True, help="Scenario JSON file.")
    run.add_argument(
        "--request",
        action="append",
        default=None,
        help="Inject an external event after the scenario's own requests (repeatable).",
    )
    run.add_argument(
        "--max-rounds",
        type=int,
        default=None,
        help="Safety cap: max rounds per super-step (overrides options.max_rounds).",
    )
    run.set_defaults(func=_cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
