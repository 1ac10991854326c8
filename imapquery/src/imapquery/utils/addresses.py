"""Normalise address and header shapes into canonical lists.

What:
  Collapse the "one value or many" shapes that show up in envelopes and
  parsed headers into ordered lists, and convert ``imapclient`` envelope
  addresses into :class:`Address` records.

Why:
  Parsers report ``To`` as a single object when one recipient is present and
  as a list otherwise. Consumers iterating recipients should not need to care.

How:
  :func:`normalize_addresses` is purely structural: ``None`` becomes ``[]``,
  lists and tuples are copied into a list, anything else is wrapped.

Interfaces:
  :class:`Address`, :func:`normalize_addresses`, :func:`address_from_envelope`,
  :func:`addresses_from_envelope`, :func:`parse_address_header`,
  :func:`normalize_headers`.

Invariants & Safety:
  - ``normalize_addresses(normalize_addresses(x)) == normalize_addresses(x)``.
  - No I/O and no mutation of the input.
"""
from __future__ import annotations

from dataclasses import dataclass
from email.header import decode_header, make_header
from email.utils import getaddresses
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class Address:
    name: Optional[str]
    address: str

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "address": self.address}


def normalize_addresses(value: Any) -> List[Any]:
    """Return ``value`` as an ordered list of address objects.

    Args:
      value: ``None``, a single address (mapping, :class:`Address`, envelope
        address or string) or a list/tuple of them.

    Returns:
      A new list; items are passed through unchanged.
    """

    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def decode_header_value(value: Any) -> Optional[str]:
    """Decode ``bytes`` and RFC 2047 encoded words into text."""

    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    try:
        return str(make_header(decode_header(value)))
    except (ValueError, LookupError):
        return str(value)


def address_from_envelope(item: Any) -> Address:
    """Convert an ``imapclient`` envelope address into an :class:`Address`.

    ``imapclient`` exposes ``name``, ``mailbox`` and ``host`` as ``bytes``;
    group markers (no host) keep the bare mailbox.
    """

    mailbox = decode_header_value(getattr(item, "mailbox", None)) or ""
    host = decode_header_value(getattr(item, "host", None))
    name = decode_header_value(getattr(item, "name", None)) or None
    return Address(name=name, address=f"{mailbox}@{host}" if host else mailbox)


def addresses_from_envelope(value: Any) -> List[Address]:
    return [address_from_envelope(item) for item in normalize_addresses(value)]


def parse_address_header(value: Optional[str]) -> List[Address]:
    """Split an RFC 5322 address header into :class:`Address` records."""

    if not value:
        return []
    return [Address(name=name or None, address=address) for name, address in getaddresses([str(value)]) if address]


HeaderSource = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def normalize_headers(headers: HeaderSource, *, only: Optional[Sequence[str]] = None) -> Dict[str, List[str]]:
    """Group header values by lower-cased name, preserving order.

    Args:
      headers: Mapping or ``(name, value)`` pairs, e.g. ``message.items()``.
      only: Optional allow-list of header names (case-insensitive).

    Returns:
      ``{"received": ["...", "..."], "subject": ["..."]}``.
    """

    pairs = headers.items() if isinstance(headers, Mapping) else headers
    wanted = {name.lower() for name in only} if only else None
    grouped: Dict[str, List[str]] = {}
    for name, value in pairs:
        key = str(name).lower()
        if wanted is not None and key not in wanted:
            continue
        for item in normalize_addresses(value):
            grouped.setdefault(key, []).append(str(item))
    return grouped
