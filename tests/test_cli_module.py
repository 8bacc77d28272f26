from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _run_module(*args: str) -> subprocess.CompletedProcess[str]:
    cmd = [sys.executable, "-m", "bprogram", *args]
    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO_ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    return subprocess.run(
        cmd, text=True, capture_output=True, cwd=REPO_ROOT, env=env
    )


def test_cli_help_succeeds() -> None:
    p = _run_module("--help")
    assert p.returncode == 0, p.stderr
    combined = (p.stdout or "") + (p.stderr or "")
    assert "Behavioral Programming engine" in combined


def test_cli_run_prints_super_steps() -> None:
    sample = REPO_ROOT / "samples" / "scenario_a.json"
    assert sample.exists()
    p = _run_module("run", "--scenario", str(sample))
    assert p.returncode == 0, p.stderr
    assert p.stdout == (
        "Super-step #1\n"
        "  1: Y [priority 1] -> woke B\n"
        "  2: X [priority 2] -> woke A\n"
        "  3: (quiescent)\n"
    )


def test_cli_scenario_requests_and_extra_requests() -> None:
    sample = REPO_ROOT / "samples" / "blocked_requests.json"
    p = _run_module("run", "--scenario", str(sample), "--request", "FOO", "--request", "PONG")
    assert p.returncode == 0, p.stderr
    assert p.stdout == (
        "Super-step #1\n"
        "  1: (quiescent)\n"
        "\n"
        "Super-step #2\n"
        "  2: PING [priority inf] -> woke Listener, request PING\n"
        "  3: (quiescent)\n"
        "\n"
        "Super-step #3\n"
        "  4: (quiescent)\n"
        "\n"
        "Super-step #4\n"
        # The blocked FOO injection was still waiting for anything.
        "  5: PONG [priority inf] -> woke Listener, request FOO, request PONG\n"
        "  6: (quiescent)\n"
    )


def test_cli_rejects_invalid_scenario(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"bthreads": []}), encoding="utf-8")
    p = _run_module("run", "--scenario", str(path))
    assert p.returncode == 2
    assert "invalid scenario" in (p.stderr or "")


def test_cli_round_limit_fails(tmp_path: Path) -> None:
    path = tmp_path / "loop.json"
    path.write_text(
        json.dumps(
            {"bthreads": [{"name": "loop", "priority": 1, "steps": [{"request": "TICK"}], "repeat": True}]}
        ),
        encoding="utf-8",
    )
    p = _run_module("run", "--scenario", str(path), "--max-rounds", "25")
    assert p.returncode == 2
    assert "did not quiesce within 25 rounds" in (p.stderr or "")


def test_cli_debug_logging_goes_to_stderr() -> None:
    sample = REPO_ROOT / "samples" / "scenario_a.json"
    p = _run_module("--log-level", "debug", "run", "--scenario", str(sample))
    assert p.returncode == 0, p.stderr
    assert "selected Y" in (p.stderr or "")
    assert "Super-step #1" in (p.stdout or "")


def test_cli_rejects_non_positive_max_rounds() -> None:
    sample = REPO_ROOT / "samples" / "scenario_a.json"
    p = _run_module("run", "--scenario", str(sample), "--max-rounds", "0")
    assert p.returncode == 2
    assert "--max-rounds must be >= 1" in (p.stderr or "")
    assert p.stdout == ""
