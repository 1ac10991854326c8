"""RFC822 parsing and transfer decoding for fetched messages and parts.

What:
  Turn raw ``BODY[]`` payloads into a :class:`ParsedMessage` (headers,
  addresses, bounded text/HTML bodies, attachment metadata) and decode single
  ``BODY[<part>]`` payloads according to their transfer encoding.

Why:
  Messages arrive in whatever shape their authors produced. Downstream
  consumers (the operation layer and the CLI) need a predictable view without
  risking oversized payloads or undecodable bytes.

How:
  Use the ``email`` package's :class:`~email.parser.BytesParser` with the
  default policy, walk leaf parts once to pick the first text and HTML bodies
  and to collect attachments, and truncate decoded text on UTF-8 byte
  boundaries.

Interfaces:
  :class:`ParsedMessage`, :func:`parse_message`, :func:`decode_transfer`,
  :func:`decode_text`.

Invariants & Safety:
  - Text is decoded with ``errors="replace"`` so a wrong charset label never
    raises.
  - Truncation works on encoded bytes so multi-byte code points are never
    split.
"""
from __future__ import annotations

import base64
import binascii
import quopri
from dataclasses import dataclass, field
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Any, Dict, List, Optional

from ..utils.addresses import Address, normalize_headers, parse_address_header


MAX_BODY_BYTES = 1_000_000
"""Soft upper bound for decoded body size in bytes."""


@dataclass
class ParsedMessage:
    """Canonical view of a fetched message."""

    message: EmailMessage
    headers: Dict[str, List[str]]
    subject: str
    sender: List[Address]
    to: List[Address]
    cc: List[Address]
    bcc: List[Address]
    date: Optional[str]
    text: str = ""
    html: str = ""
    attachments: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "from": [address.as_dict() for address in self.sender],
            "to": [address.as_dict() for address in self.to],
            "cc": [address.as_dict() for address in self.cc],
            "bcc": [address.as_dict() for address in self.bcc],
            "date": self.date,
            "text": self.text,
            "html": self.html,
            "attachments": list(self.attachments),
        }


def parse_message(raw: bytes) -> ParsedMessage:
    """Parse a raw IMAP message into a :class:`ParsedMessage`.

    Args:
      raw: Raw message bytes as retrieved from ``BODY[]``/``RFC822`` fetches.

    Returns:
      The parsed view; address fields are always lists.
    """

    parser = BytesParser(policy=policy.default)
    message = parser.parsebytes(raw)
    text, html, attachments = _walk_leaves(message)
    return ParsedMessage(
        message=message,
        headers=normalize_headers(message.items()),
        subject=str(message.get("subject", "") or ""),
        sender=parse_address_header(message.get("from")),
        to=parse_address_header(message.get("to")),
        cc=parse_address_header(message.get("cc")),
        bcc=parse_address_header(message.get("bcc")),
        date=str(message["date"]) if message.get("date") else None,
        text=text,
        html=html,
        attachments=attachments,
    )


def _walk_leaves(message: EmailMessage):
    text = ""
    html = ""
    attachments: List[Dict[str, Any]] = []
    for part in message.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        disposition = part.get_content_disposition()
        if disposition == "attachment" or (disposition == "inline" and part.get_filename()):
            payload = part.get_payload(decode=True) or b""
            attachments.append(
                {
                    "filename": part.get_filename(),
                    "content_type": content_type,
                    "size": len(payload),
                }
            )
            continue
        if content_type == "text/plain" and not text:
            text = _part_text(part)
        elif content_type == "text/html" and not html:
            html = _part_text(part)
    return text, html, attachments


def _part_text(part: EmailMessage) -> str:
    payload = part.get_payload(decode=True) or b""
    return _truncate(decode_text(payload, part.get_content_charset()))


def decode_text(payload: bytes, charset: Optional[str] = None) -> str:
    """Decode ``payload`` with ``charset``, falling back to UTF-8."""

    try:
        return payload.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def decode_transfer(payload: bytes, encoding: Optional[str]) -> bytes:
    """Undo a ``Content-Transfer-Encoding`` on a single part's payload.

    ``base64`` and ``quoted-printable`` are decoded; ``7bit``, ``8bit``,
    ``binary`` and unknown labels are returned unchanged.

    Raises:
      ValueError: When a base64 payload is corrupt.
    """

    label = (encoding or "").strip().lower()
    if label == "base64":
        try:
            return base64.b64decode(payload, validate=False)
        except binascii.Error as exc:
            raise ValueError(f"corrupt base64 payload: {exc}") from exc
    if label == "quoted-printable":
        return quopri.decodestring(payload)
    return payload


def _truncate(text: str) -> str:
    """Clamp ``text`` to :data:`MAX_BODY_BYTES` when encoded in UTF-8."""

    encoded = text.encode("utf-8")
    if len(encoded) <= MAX_BODY_BYTES:
        return text
    return encoded[:MAX_BODY_BYTES].decode("utf-8", errors="ignore")
