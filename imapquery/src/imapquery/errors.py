"""Exception hierarchy shared by the query, reconciliation and MIME layers.

What:
  Define the typed failures raised by :mod:`imapquery`: query validation errors
  from the compiler, structural errors from the part resolver, and transport
  failures wrapped around :mod:`imapclient`.

Why:
  Callers (the CLI and the operation layer) need to tell local validation
  failures, which are reported immediately and never retried, apart from
  transport failures that originate on the wire.

How:
  Root every error at :class:`ImapQueryError`. Query errors optionally carry
  the ``display_text`` that was being compiled so operators can see what was
  actually searched for.

Interfaces:
  :class:`ImapQueryError`, :class:`QueryError`, :class:`InvalidDate`,
  :class:`InvalidField`, :class:`InvalidSizeUnit`, :class:`QueryTooLong`,
  :class:`MalformedBodyStructure`, :class:`TransportFailure`,
  :class:`UidLookupError`, :class:`PartTooLarge`.
"""
from __future__ import annotations

from typing import Optional


class ImapQueryError(Exception):
    """Base class for every error raised by the package."""


class QueryError(ImapQueryError):
    """Raised when a search input cannot be compiled into criteria.

    Attributes:
      display_text: Human-readable rendering of the input being compiled, when
        one could be produced before the failure.
    """

    def __init__(self, message: str, *, display_text: Optional[str] = None) -> None:
        super().__init__(message)
        self.display_text = display_text

    def __str__(self) -> str:
        base = super().__str__()
        if self.display_text:
            return f"{base} (query: {self.display_text})"
        return base


class InvalidDate(QueryError):
    """A ``since``/``before`` value could not be parsed into a date."""


class InvalidField(QueryError):
    """A structured filter referenced a field the compiler does not know."""


class InvalidSizeUnit(QueryError):
    """A size threshold was not a non-negative integer in the expected unit."""


class QueryTooLong(QueryError):
    """The rendered query exceeded the configured maximum length."""


class MalformedBodyStructure(ImapQueryError):
    """A body-structure tree was structurally inconsistent."""


class TransportFailure(ImapQueryError):
    """The IMAP collaborator failed; the original error is chained."""


class UidLookupError(ImapQueryError):
    """Revalidating a single UID failed without compromising the session."""

    def __init__(self, uid: int, message: str = "") -> None:
        super().__init__(message or f"lookup failed for UID {uid}")
        self.uid = uid


class PartTooLarge(ImapQueryError):
    """A downloaded part exceeded the configured size ceiling."""
