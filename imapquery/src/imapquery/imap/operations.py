"""Query operations composed from the compiler, reconciler and part resolver.

What:
  Implement the user-facing read operations: search, list newest, list with
  selectable content, get one message, list its parts, download parts or
  the whole message, and list mailboxes with their STATUS counters.
  Each returns a dataclass with an ``as_dict`` method for JSON output.

Why:
  The CLI and any embedding application need the same sequencing: compile,
  SEARCH, reconcile, FETCH, resolve. Keeping that sequencing here leaves the
  core modules pure and the front ends thin.

How:
  Every message operation selects the mailbox read-only through
  :meth:`~imapquery.imap.client.ImapQueryClient.session`; mailbox listing and
  STATUS run without a selection. Operations issue one command at a time and
  log a summary line through :func:`get_logger`. Search terms are logged
  under redacted keys only.

Interfaces:
  :class:`IncludePart`, :class:`MessageSummary`, :class:`SearchOutcome`,
  :class:`ListOutcome`, :class:`EmailListOutcome`, :class:`EmailDetail`,
  :class:`PartListing`, :class:`DownloadedPart`, :class:`MailboxInfo`,
  :class:`MailboxListing`, :class:`MailboxStatus`,
  :class:`DownloadedMessage`, :func:`search_emails`,
  :func:`list_emails`, :func:`get_emails_list`, :func:`get_email`,
  :func:`list_parts`, :func:`download_attachments`, :func:`list_mailboxes`,
  :func:`mailbox_status`, :func:`download_email`.

Invariants & Safety:
  - Results are ordered newest first (descending UID).
  - A UID that vanishes between SEARCH and FETCH is counted as dropped, never
    replaced.
  - Transport failures surface with the query's display text attached.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.parser import BytesParser
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config.loader import get_runtime_config
from ..errors import InvalidField, TransportFailure, UidLookupError
from ..mime.message import decode_text, parse_message
from ..mime.parts import PartInfo, PartSummary, downloadable_part_ids, resolve_parts, summarize_parts
from ..mime.structure import BodyStructureNode, structure_from_imapclient, structure_to_dict
from ..query.compiler import CompiledQuery, clamp_limit, compile_query
from ..query.criteria import CriteriaNode, to_dict
from ..utils.addresses import Address, addresses_from_envelope, decode_header_value, normalize_headers
from ..utils.logging import get_logger
from ..utils.params import mailbox_name
from .client import DEFAULT_STATUS_FIELDS, ImapQueryClient
from .reconcile import ReconciliationResult, reconcile


SUMMARY_FIELDS = ("ENVELOPE", "FLAGS", "RFC822.SIZE")


class IncludePart(str, Enum):
    """Optional sections of a :func:`get_emails_list` record."""

    BODY_STRUCTURE = "bodyStructure"
    FLAGS = "flags"
    SIZE = "size"
    ATTACHMENTS_INFO = "attachmentsInfo"
    TEXT_CONTENT = "textContent"
    HTML_CONTENT = "htmlContent"
    HEADERS = "headers"


def _flags(data: Dict[bytes, Any]) -> List[str]:
    return [decode_header_value(flag) or "" for flag in data.get(b"FLAGS", ())]


@dataclass
class MessageSummary:
    """Envelope-level view of one message."""

    uid: int
    subject: str = ""
    sender: List[Address] = field(default_factory=list)
    to: List[Address] = field(default_factory=list)
    cc: List[Address] = field(default_factory=list)
    date: Optional[str] = None
    size: Optional[int] = None
    flags: List[str] = field(default_factory=list)
    sequence: Optional[int] = None

    @property
    def seen(self) -> bool:
        return "\\Seen" in self.flags

    @classmethod
    def from_fetch(cls, uid: int, data: Dict[bytes, Any]) -> "MessageSummary":
        envelope = data.get(b"ENVELOPE")
        date = getattr(envelope, "date", None)
        size = data.get(b"RFC822.SIZE")
        sequence = data.get(b"SEQ")
        return cls(
            uid=uid,
            subject=decode_header_value(getattr(envelope, "subject", None)) or "",
            sender=addresses_from_envelope(getattr(envelope, "from_", None)),
            to=addresses_from_envelope(getattr(envelope, "to", None)),
            cc=addresses_from_envelope(getattr(envelope, "cc", None)),
            date=date.isoformat() if isinstance(date, datetime) else None,
            size=int(size) if size is not None else None,
            flags=_flags(data),
            sequence=int(sequence) if sequence is not None else None,
        )

    def as_dict(self) -> Dict[str, Any]:
        payload = {
            "uid": self.uid,
            "subject": self.subject,
            "from": [address.as_dict() for address in self.sender],
            "to": [address.as_dict() for address in self.to],
            "cc": [address.as_dict() for address in self.cc],
            "date": self.date,
            "size": self.size,
            "flags": list(self.flags),
            "seen": self.seen,
        }
        if self.sequence is not None:
            payload["sequence"] = self.sequence
        return payload


@dataclass
class SearchOutcome:
    """Result of :func:`search_emails`."""

    mailbox: str
    display_text: str
    criteria: CriteriaNode
    total_found: int
    dropped: int
    limit: int
    messages: List[MessageSummary] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "query": self.display_text,
                "criteria": to_dict(self.criteria),
                "folder": self.mailbox,
                "total_found": self.total_found,
                "returned": len(self.messages),
                "dropped": self.dropped,
                "limit": self.limit,
            },
            "messages": [message.as_dict() for message in self.messages],
        }


@dataclass
class ListOutcome:
    """Result of :func:`list_emails`."""

    mailbox: str
    total_messages: int
    recent: int
    unseen: int
    fetch_range: Optional[str]
    messages: List[MessageSummary] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "folder": self.mailbox,
                "total_messages": self.total_messages,
                "returned": len(self.messages),
                "recent_messages": self.recent,
                "unseen_messages": self.unseen,
                "fetch_range": self.fetch_range,
            },
            "messages": [message.as_dict() for message in self.messages],
        }


@dataclass
class EmailListOutcome:
    """Result of :func:`get_emails_list`."""

    mailbox: str
    display_text: str
    total_found: int
    dropped: int
    records: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "query": self.display_text,
                "folder": self.mailbox,
                "total_found": self.total_found,
                "returned": len(self.records),
                "dropped": self.dropped,
            },
            "emails": list(self.records),
        }


@dataclass
class EmailDetail:
    """Result of :func:`get_email`."""

    uid: int
    mailbox: str
    subject: str
    sender: List[Address]
    to: List[Address]
    cc: List[Address]
    bcc: List[Address]
    date: Optional[str]
    text: str
    html: str
    attachments: List[Dict[str, Any]]
    flags: List[str]
    size: Optional[int]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "folder": self.mailbox,
            "subject": self.subject,
            "from": [address.as_dict() for address in self.sender],
            "to": [address.as_dict() for address in self.to],
            "cc": [address.as_dict() for address in self.cc],
            "bcc": [address.as_dict() for address in self.bcc],
            "date": self.date,
            "text": self.text,
            "html": self.html,
            "attachments": list(self.attachments),
            "flags": list(self.flags),
            "seen": "\\Seen" in self.flags,
            "size": self.size,
        }


@dataclass
class PartListing:
    """Result of :func:`list_parts`."""

    uid: int
    mailbox: str
    parts: List[PartInfo]
    summary: PartSummary

    def as_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "folder": self.mailbox,
            "text_part_id": self.summary.text_part_id,
            "html_part_id": self.summary.html_part_id,
            "attachments": [info.as_dict() for info in self.summary.attachments],
            "inline": [info.as_dict() for info in self.summary.inline],
            "parts": [info.as_dict() for info in self.parts],
        }


@dataclass
class DownloadedPart:
    """One downloaded body section, transfer encoding removed."""

    part_id: str
    filename: Optional[str]
    mime_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    def as_dict(self, *, include_content: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "part_id": self.part_id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size": self.size,
        }
        if include_content:
            payload["content_base64"] = base64.b64encode(self.content).decode("ascii")
        return payload


@dataclass
class MailboxInfo:
    """One entry of :func:`list_mailboxes`."""

    path: str
    delimiter: str
    flags: Tuple[str, ...] = ()
    status: Optional[Dict[str, int]] = None

    @property
    def name(self) -> str:
        return self.path.rsplit(self.delimiter, 1)[-1] if self.delimiter else self.path

    @property
    def level(self) -> int:
        return self.path.count(self.delimiter) if self.delimiter else 0

    @property
    def selectable(self) -> bool:
        return not any(flag.lower() in ("\\noselect", "\\nonexistent") for flag in self.flags)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "path": self.path,
            "name": self.name,
            "level": self.level,
            "flags": list(self.flags),
            "selectable": self.selectable,
            "status": dict(self.status) if self.status is not None else None,
        }
        if self.status is not None:
            payload["has_messages"] = self.status.get("MESSAGES", 0) > 0
            payload["has_unseen_messages"] = self.status.get("UNSEEN", 0) > 0
        return payload


@dataclass
class MailboxListing:
    """Result of :func:`list_mailboxes`."""

    mailboxes: List[MailboxInfo]
    status_fields: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        statuses = [info.status for info in self.mailboxes if info.status]
        return {
            "summary": {
                "total_mailboxes": len(self.mailboxes),
                "total_messages": sum(status.get("MESSAGES", 0) for status in statuses),
                "total_unseen": sum(status.get("UNSEEN", 0) for status in statuses),
                "status_fields": list(self.status_fields),
            },
            "mailboxes": [info.as_dict() for info in self.mailboxes],
        }


@dataclass
class MailboxStatus:
    """Result of :func:`mailbox_status`, with derived activity hints."""

    mailbox: str
    counters: Dict[str, int]

    @property
    def activity_level(self) -> str:
        recent = self.counters.get("RECENT", 0)
        if recent > 5:
            return "high"
        return "medium" if recent > 0 else "low"

    def as_dict(self) -> Dict[str, Any]:
        messages = self.counters.get("MESSAGES", 0)
        unseen = self.counters.get("UNSEEN", 0)
        recent = self.counters.get("RECENT", 0)
        return {
            "folder": self.mailbox,
            "messages": messages,
            "recent": recent,
            "unseen": unseen,
            "seen": max(messages - unseen, 0),
            "uid_next": self.counters.get("UIDNEXT"),
            "uid_validity": self.counters.get("UIDVALIDITY"),
            "is_empty": messages == 0,
            "has_new_messages": unseen > 0,
            "has_recent_messages": recent > 0,
            "activity_level": self.activity_level,
        }


@dataclass
class DownloadedMessage:
    """A whole message in RFC 5322 (``.eml``) form."""

    uid: int
    mailbox: str
    content: bytes

    @property
    def filename(self) -> str:
        return f"{self.uid}.eml"

    def as_dict(self, *, include_content: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "uid": self.uid,
            "folder": self.mailbox,
            "filename": self.filename,
            "mime_type": "message/rfc822",
            "size": len(self.content),
        }
        if include_content:
            payload["content_base64"] = base64.b64encode(self.content).decode("ascii")
        return payload


def _compile(search_input: Any, now: Optional[datetime]) -> CompiledQuery:
    settings = get_runtime_config().search
    return compile_query(
        search_input,
        now=now,
        max_length=settings.max_query_length,
        attachment_content_type=settings.attachment_header_heuristic,
    )


def _search_and_reconcile(
    client: ImapQueryClient, compiled: CompiledQuery, limit: Any
) -> ReconciliationResult:
    try:
        raw = client.uid_search(compiled.criteria)
        return reconcile(compiled.criteria, raw, client.snapshot_provider(), limit=limit)
    except TransportFailure as exc:
        raise TransportFailure(f"{exc} (query: {compiled.display_text})") from exc


def _effective_limit(limit: Any) -> int:
    return clamp_limit(limit, default=get_runtime_config().search.default_limit)


def search_emails(
    client: ImapQueryClient,
    mailbox: Any,
    search_input: Any,
    *,
    limit: Any = None,
    now: Optional[datetime] = None,
) -> SearchOutcome:
    """Search ``mailbox`` and return envelope summaries, newest first.

    What:
      Compiles ``search_input``, runs a UID SEARCH, reconciles the UIDs and
      fetches envelope, flags and size for the survivors.

    Why:
      This is the workhorse for both free-text and structured searches; the
      summary reports how many messages matched, how many were returned and
      how many vanished in between.

    Args:
      client: Connected client.
      mailbox: Mailbox name or ``{"mode", "value"}`` locator.
      search_input: Query string, mapping or canonical input model.
      limit: Maximum results (clamped to ``[1, 1000]``).
      now: Evaluation time for relative dates.

    Raises:
      QueryError: When the input does not compile.
      TransportFailure: When the server cannot be queried.
    """

    logger = get_logger("imapquery.operations")
    compiled = _compile(search_input, now)
    effective = _effective_limit(limit)
    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        result = _search_and_reconcile(client, compiled, effective)
        data = client.fetch(result.valid_uids, SUMMARY_FIELDS)
    messages = [MessageSummary.from_fetch(uid, data[uid]) for uid in result.valid_uids if uid in data]
    dropped = result.dropped_count + (len(result.valid_uids) - len(messages))
    logger.info(
        "search_complete",
        folder=name,
        query=compiled.display_text,
        total_found=result.total_found,
        returned=len(messages),
        dropped=dropped,
    )
    return SearchOutcome(
        mailbox=name,
        display_text=compiled.display_text,
        criteria=compiled.criteria,
        total_found=result.total_found,
        dropped=dropped,
        limit=result.limit,
        messages=messages,
    )


def list_emails(client: ImapQueryClient, mailbox: Any = None, *, limit: Any = None) -> ListOutcome:
    """Return the newest ``limit`` messages without searching.

    How:
      Reads ``MESSAGES`` via STATUS, fetches the sequence range
      ``max(1, total - limit + 1):total`` and sorts by UID descending.
    """

    logger = get_logger("imapquery.operations")
    effective = _effective_limit(limit)
    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        counters = client.status(name, ("MESSAGES", "RECENT", "UNSEEN"))
        total = counters.get("MESSAGES", 0)
        if total <= 0:
            return ListOutcome(name, 0, counters.get("RECENT", 0), counters.get("UNSEEN", 0), None)
        start = max(1, total - effective + 1)
        data = client.fetch_range(start, total, ("UID",) + SUMMARY_FIELDS)
    messages = []
    for sequence, item in data.items():
        summary = MessageSummary.from_fetch(int(item.get(b"UID", 0)), item)
        summary.sequence = int(sequence)
        messages.append(summary)
    messages.sort(key=lambda summary: summary.uid, reverse=True)
    logger.info("list_complete", folder=name, total=total, returned=len(messages))
    return ListOutcome(
        mailbox=name,
        total_messages=total,
        recent=counters.get("RECENT", 0),
        unseen=counters.get("UNSEEN", 0),
        fetch_range=f"{start}:{total}",
        messages=messages,
    )


def _normalize_include(include_parts: Optional[Iterable[Any]]) -> Tuple[IncludePart, ...]:
    if not include_parts:
        return ()
    return tuple(item if isinstance(item, IncludePart) else IncludePart(str(item)) for item in include_parts)


def _header_section(headers_to_include: Optional[Sequence[str]]) -> str:
    if headers_to_include:
        names = " ".join(name.strip().upper() for name in headers_to_include if name.strip())
        if names:
            return f"BODY.PEEK[HEADER.FIELDS ({names})]"
    return "BODY.PEEK[HEADER]"


def _header_bytes(data: Dict[bytes, Any]) -> Optional[bytes]:
    for key, value in data.items():
        if isinstance(key, bytes) and key.startswith(b"BODY[HEADER"):
            return value if isinstance(value, bytes) else str(value).encode("utf-8")
    return None


def _parse_headers(raw: Optional[bytes]) -> Dict[str, List[str]]:
    if not raw:
        return {}
    message = BytesParser(policy=policy.default).parsebytes(raw, headersonly=True)
    return normalize_headers((name, str(value)) for name, value in message.items())


def _part_text(client: ImapQueryClient, uid: int, parts: List[PartInfo], part_id: Optional[str]) -> Optional[str]:
    if part_id is None:
        return None
    info = next((item for item in parts if item.part_id == part_id), None)
    payload = client.download(
        uid,
        part_id,
        encoding=info.encoding if info else None,
        max_bytes=get_runtime_config().parts.max_download_bytes,
    )
    return decode_text(payload, info.charset if info else None)


def get_emails_list(
    client: ImapQueryClient,
    mailbox: Any,
    search_input: Any = None,
    *,
    include_parts: Optional[Iterable[Any]] = None,
    limit: Any = None,
    headers_to_include: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> EmailListOutcome:
    """Search and return one record per message with selectable sections.

    What:
      Each record always carries ``uid``, ``folder`` and the envelope
      summary. ``include_parts`` adds any of :class:`IncludePart`:
      ``bodyStructure``, ``flags``, ``size``, ``attachmentsInfo``,
      ``textContent``, ``htmlContent`` and ``headers``.

    How:
      One bulk FETCH collects envelopes and, when needed, ``BODYSTRUCTURE``
      and header sections. Text and HTML bodies are then downloaded one part
      at a time using the IDs chosen by :func:`summarize_parts`; a message
      with no such part reports ``None``.
      A message expunged before its content is downloaded is left out and
      counted as dropped.

    Args:
      headers_to_include: Restrict ``headers`` to these names.

    Raises:
      ValueError: For an unknown ``include_parts`` entry.
    """

    logger = get_logger("imapquery.operations")
    wanted = _normalize_include(include_parts)
    compiled = _compile(search_input, now)
    needs_structure = any(
        part in wanted
        for part in (
            IncludePart.BODY_STRUCTURE,
            IncludePart.ATTACHMENTS_INFO,
            IncludePart.TEXT_CONTENT,
            IncludePart.HTML_CONTENT,
        )
    )
    fields = list(SUMMARY_FIELDS)
    if needs_structure:
        fields.append("BODYSTRUCTURE")
    if IncludePart.HEADERS in wanted:
        fields.append(_header_section(headers_to_include))

    records: List[Dict[str, Any]] = []
    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        result = _search_and_reconcile(client, compiled, _effective_limit(limit))
        data = client.fetch(result.valid_uids, fields)
        for uid in result.valid_uids:
            item = data.get(uid)
            if item is None:
                continue
            summary = MessageSummary.from_fetch(uid, item)
            record = summary.as_dict()
            record["folder"] = name
            if IncludePart.FLAGS not in wanted:
                record.pop("flags")
                record.pop("seen")
            if IncludePart.SIZE not in wanted:
                record.pop("size")
            if IncludePart.HEADERS in wanted:
                record["headers"] = _parse_headers(_header_bytes(item))
            if needs_structure:
                root: Optional[BodyStructureNode] = structure_from_imapclient(item.get(b"BODYSTRUCTURE"))
                parts = resolve_parts(root)
                overview = summarize_parts(parts)
                if IncludePart.BODY_STRUCTURE in wanted:
                    record["body_structure"] = structure_to_dict(root)
                if IncludePart.ATTACHMENTS_INFO in wanted:
                    record["attachments_info"] = [info.as_dict() for info in overview.attachments]
                try:
                    if IncludePart.TEXT_CONTENT in wanted:
                        record["text_content"] = _part_text(client, uid, parts, overview.text_part_id)
                    if IncludePart.HTML_CONTENT in wanted:
                        record["html_content"] = _part_text(client, uid, parts, overview.html_part_id)
                except UidLookupError:
                    # Expunged after the bulk FETCH; reported through ``dropped``.
                    logger.warning("message_vanished", folder=name, uid=uid)
                    continue
            records.append(record)
    dropped = result.dropped_count + (len(result.valid_uids) - len(records))
    logger.info("list_with_parts_complete", folder=name, returned=len(records), dropped=dropped)
    return EmailListOutcome(
        mailbox=name,
        display_text=compiled.display_text,
        total_found=result.total_found,
        dropped=dropped,
        records=records,
    )


def get_email(client: ImapQueryClient, mailbox: Any, uid: int) -> EmailDetail:
    """Fetch and parse one complete message.

    Raises:
      UidLookupError: When ``uid`` does not exist in ``mailbox``.
    """

    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        data = client.fetch([uid], ["BODY.PEEK[]", "FLAGS", "RFC822.SIZE"])
    item = data.get(uid)
    if item is None:
        raise UidLookupError(uid, f"message UID {uid} not found in {name}")
    raw = item.get(b"BODY[]") or b""
    parsed = parse_message(raw)
    size = item.get(b"RFC822.SIZE")
    return EmailDetail(
        uid=uid,
        mailbox=name,
        subject=parsed.subject,
        sender=parsed.sender,
        to=parsed.to,
        cc=parsed.cc,
        bcc=parsed.bcc,
        date=parsed.date,
        text=parsed.text,
        html=parsed.html,
        attachments=parsed.attachments,
        flags=_flags(item),
        size=int(size) if size is not None else len(raw),
    )


def _fetch_parts(client: ImapQueryClient, uid: int) -> List[PartInfo]:
    data = client.fetch([uid], ["BODYSTRUCTURE"])
    item = data.get(uid)
    if item is None:
        raise UidLookupError(uid, f"message UID {uid} not found")
    return resolve_parts(structure_from_imapclient(item.get(b"BODYSTRUCTURE")))


def list_parts(
    client: ImapQueryClient,
    mailbox: Any,
    uid: int,
    *,
    include_inline: Optional[bool] = None,
) -> PartListing:
    """Resolve the part tree of one message."""

    if include_inline is None:
        include_inline = get_runtime_config().parts.include_inline
    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        parts = _fetch_parts(client, uid)
    summary = summarize_parts(parts, include_inline=include_inline)
    return PartListing(uid=uid, mailbox=name, parts=parts, summary=summary)


def download_attachments(
    client: ImapQueryClient,
    mailbox: Any,
    uid: int,
    *,
    part_ids: Any = None,
    all_attachments: bool = False,
    include_inline: Optional[bool] = None,
) -> List[DownloadedPart]:
    """Download selected parts of one message.

    What:
      With ``all_attachments`` every attachment part (plus inline parts when
      ``include_inline``) is downloaded; otherwise ``part_ids`` (a list or a
      comma-separated string) names the parts explicitly.

    How:
      The body structure is resolved first so each part is decoded with its
      declared transfer encoding and reported with its filename. Parts the
      resolver does not know are downloaded undecoded.

    Raises:
      UidLookupError: When the message or a part is gone.
      PartTooLarge: When a part exceeds ``parts.max_download_bytes``.
    """

    logger = get_logger("imapquery.operations")
    settings = get_runtime_config().parts
    if include_inline is None:
        include_inline = settings.include_inline
    downloads: List[DownloadedPart] = []
    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        parts = _fetch_parts(client, uid)
        if all_attachments:
            wanted = downloadable_part_ids(parts, include_inline=include_inline)
        else:
            wanted = _split_part_ids(part_ids)
        if not wanted:
            logger.warning("no_parts_to_download", folder=name, uid=uid)
        by_id = {info.part_id: info for info in parts}
        for part_id in wanted:
            info = by_id.get(part_id)
            content = client.download(
                uid,
                part_id,
                encoding=info.encoding if info else None,
                max_bytes=settings.max_download_bytes,
            )
            downloads.append(
                DownloadedPart(
                    part_id=part_id,
                    filename=info.filename if info else None,
                    mime_type=info.mime_type if info else "application/octet-stream",
                    content=content,
                )
            )
    logger.info("download_complete", folder=name, uid=uid, parts=len(downloads))
    return downloads


def _split_part_ids(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [chunk.strip() for chunk in value.split(",") if chunk.strip()]
    return [str(item).strip() for item in value if str(item).strip()]



def _status_fields(status_fields: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not status_fields:
        return ()
    wanted: List[str] = []
    for item in status_fields:
        name = str(item).strip().upper()
        if name not in DEFAULT_STATUS_FIELDS:
            raise InvalidField(
                f"unknown status field {item!r}; expected one of {', '.join(DEFAULT_STATUS_FIELDS)}"
            )
        if name not in wanted:
            wanted.append(name)
    return tuple(wanted)


def list_mailboxes(client: ImapQueryClient, *, status_fields: Optional[Iterable[str]] = None) -> MailboxListing:
    """List every mailbox, optionally with STATUS counters.

    What:
      Returns one :class:`MailboxInfo` per LIST entry in server order. With
      ``status_fields`` (any of ``MESSAGES``, ``RECENT``, ``UNSEEN``,
      ``UIDNEXT``, ``UIDVALIDITY``) each selectable mailbox also carries
      its counters.

    Why:
      Callers pick a mailbox before searching it; counters let them spot busy
      folders without selecting each one.

    Raises:
      InvalidField: For an unknown status field.
    """

    logger = get_logger("imapquery.operations")
    fields = _status_fields(status_fields)
    mailboxes: List[MailboxInfo] = []
    for flags, delimiter, path in client.list_mailboxes():
        info = MailboxInfo(path=path, delimiter=delimiter, flags=flags)
        if fields and info.selectable:
            info.status = client.status(path, fields)
        mailboxes.append(info)
    logger.info("mailbox_list_complete", mailboxes=len(mailboxes), status_fields=list(fields))
    return MailboxListing(mailboxes=mailboxes, status_fields=fields)


def mailbox_status(client: ImapQueryClient, mailbox: Any = None) -> MailboxStatus:
    """Return the STATUS counters of one mailbox without selecting it."""

    name = client.resolve_mailbox(mailbox_name(mailbox, client.config.folder or "INBOX"))
    return MailboxStatus(mailbox=name, counters=client.status(name, DEFAULT_STATUS_FIELDS))


def download_email(client: ImapQueryClient, mailbox: Any, uid: int) -> DownloadedMessage:
    """Download the complete raw message, suitable for saving as ``.eml``.

    Raises:
      UidLookupError: When ``uid`` does not exist in ``mailbox``.
      PartTooLarge: When the message exceeds ``parts.max_download_bytes``.
    """

    logger = get_logger("imapquery.operations")
    with client.session(mailbox_name(mailbox, client.config.folder or "INBOX")) as name:
        content = client.download(uid, "", max_bytes=get_runtime_config().parts.max_download_bytes)
    logger.info("message_download_complete", folder=name, uid=uid, size=len(content))
    return DownloadedMessage(uid=uid, mailbox=name, content=content)
