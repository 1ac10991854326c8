"""Pytest fixtures for unit tests requiring IMAP fakes.

What:
  Prepare the unit test environment by ensuring ``tests/unit`` is importable and
  by exposing an ``imap_client`` fixture backed by :class:`FakeImapBackend`.

Why:
  The client and operation tests interact with ``imapclient`` extensively.
  Providing a consistent fake prevents tests from depending on network
  resources and keeps message flows deterministic.

How:
  Append the unit directory to ``sys.path`` for local imports, monkeypatch the
  ``IMAPClient`` constructor used by :mod:`imapquery.imap.client`, and yield both
  the connected :class:`ImapQueryClient` and the backend for assertions.

Interfaces:
  :func:`backend`, :func:`imap_client` (pytest fixtures).

Invariants & Safety:
  - Each test receives a fresh backend instance to eliminate state leakage.
"""

import sys
from pathlib import Path

import pytest

from imapquery.imap.client import ImapConfig, ImapQueryClient

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    """Return a fresh fake backend wired in place of ``IMAPClient``."""

    fake = FakeImapBackend()
    monkeypatch.setattr("imapquery.imap.client.IMAPClient", lambda *args, **kwargs: fake)
    return fake


@pytest.fixture
def imap_client(backend: FakeImapBackend):
    """Yield a connected client and its backend as ``(client, backend)``.

    The client is entered as a context manager so the login/logout flow
    mirrors production.
    """

    config = ImapConfig(host="localhost", username="user", password="pass")
    with ImapQueryClient(config) as client:
        yield client, backend
