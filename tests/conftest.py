"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Establish project import paths and define fixtures that apply a canned runtime
  configuration to every test.

Why:
  The CLI tests execute the real ``imapquery`` package as a module. To ensure
  imports resolve to the source tree rather than an installed wheel, we prepend
  the ``imapquery/src`` directory to ``sys.path``. The autouse fixture keeps
  configuration state deterministic between tests.

How:
  Compute the project root relative to the file, inject the source directory into
  ``sys.path`` when available, and define :func:`runtime_config` to manage the
  ``IMAPQUERY_CONFIG_PATH`` environment variable while resetting the shared
  runtime cache before and after each test.

Interfaces:
  :func:`runtime_config` (pytest fixture), :data:`CONFIG_PATH`.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "imapquery" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from imapquery.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    What:
      Sets ``IMAPQUERY_CONFIG_PATH`` to the repository fixture, exports the
      password variable it names, and clears the configuration cache before
      and after each test.

    Args:
      monkeypatch: Pytest helper injected automatically for environment control.
    """

    monkeypatch.setenv("IMAPQUERY_CONFIG_PATH", str(CONFIG_PATH))
    monkeypatch.setenv("IMAPQUERY_TEST_PASSWORD", "secret")
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
