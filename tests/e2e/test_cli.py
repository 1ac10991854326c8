"""End-to-end tests asserting CLI commands execute successfully.

What:
  Launch the ``imapquery.cli`` module through ``python -m`` and validate the
  observable behaviour of the offline ``compile`` command: JSON on stdout and
  shell exit codes.

Why:
  These tests ensure the entry point wiring and environment bootstrapping work
  when invoked the same way operators and agent tool runners do.

How:
  Construct subprocess invocations with a controlled ``PYTHONPATH`` pointing to
  the in-repo source tree and assert on return codes and parsed stdout.

Interfaces:
  ``test_cli_compile``, ``test_cli_compile_filter``,
  ``test_cli_compile_error_exit_code``, ``test_cli_missing_config``.

Invariants & Safety:
  - Tests run against the local source tree to avoid depending on installed
    packages.
  - Commands must succeed without requiring network access.
"""

import json
import os
import pathlib
import subprocess
import sys


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]


def _run_cli(*args: str, **env_overrides: str) -> subprocess.CompletedProcess:
    """Execute the imapquery CLI with the provided arguments.

    Args:
      *args: Command-line arguments to pass to ``imapquery.cli``.
      **env_overrides: Extra environment variables for the child process.

    Returns:
      Completed subprocess result containing return code and output.
    """

    cmd = [sys.executable, "-m", "imapquery.cli", *args]
    env = dict(os.environ)
    env["PYTHONPATH"] = f"{PROJECT_ROOT / 'imapquery' / 'src'}{os.pathsep}{env.get('PYTHONPATH', '')}"
    env.update(env_overrides)
    return subprocess.run(cmd, text=True, capture_output=True, cwd=PROJECT_ROOT, env=env)


def test_cli_compile() -> None:
    result = _run_cli("compile", "from:a and subject:b")
    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["display_text"] == "from:a and subject:b"
    assert payload["criteria"] == {
        "and": [{"field": "from", "value": "a"}, {"field": "subject", "value": "b"}]
    }
    assert payload["imap"] == ["FROM", "a", "SUBJECT", "b"]


def test_cli_compile_filter() -> None:
    result = _run_cli(
        "compile",
        "--filter",
        json.dumps({"read_status": "unread", "since": "2024-05-01"}),
    )
    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["imap"] == ["UNSEEN", "SINCE", "2024-05-01"]
    assert payload["display_text"] == "unseen and since:2024-05-01"


def test_cli_compile_error_exit_code() -> None:
    result = _run_cli("compile", "since:someday")
    assert result.returncode == 1
    payload = json.loads(result.stdout)
    assert payload["error"] == "InvalidDate"
    assert payload["query"] == "since:someday"


def test_cli_missing_config(tmp_path: pathlib.Path) -> None:
    result = _run_cli("--config", str(tmp_path / "absent.yaml"), "compile", "unread")
    assert result.returncode == 1
    assert json.loads(result.stdout)["error"] == "RuntimeConfigError"
