"""Compile search inputs into criteria trees.

What:
  Implement :func:`compile_query`, the single entry point turning a free-text
  query, a :class:`~imapquery.query.inputs.StructuredFilter` or a quick-filter
  preset into a :mod:`~imapquery.query.criteria` tree plus the display text
  operators see next to the results.

Why:
  Search intents written by people and by AI agents are loose: mixed casing,
  relative dates, KB versus byte sizes, ``and``/``&`` connectives. Doing the
  normalisation here keeps the IMAP translation layer a mechanical mapping.

How:
  Free text is split once at the top level on whichever connective appears
  first (``and``/``&`` or ``or``/``|``) and every part is compiled again with
  the same rules; there are no parentheses and no precedence between AND and
  OR. Tokens are either ``field:value`` pairs or bare flag keywords; anything
  unrecognised becomes a ``TEXT`` leaf over the whole token. Structured filters
  contribute one node per populated field under an implicit ``And``. Quick
  presets come from :mod:`imapquery.query.quick`.

Interfaces:
  :class:`CompiledQuery`, :func:`compile_query`, :func:`parse_free_text`,
  :func:`compile_filter`, :func:`compile_quick`, :func:`fan_out_text`,
  :func:`clamp_limit`.

Invariants & Safety:
  - Unparseable dates raise :class:`~imapquery.errors.InvalidDate`; they are
    never folded into a subject search.
  - Free-text ``larger:``/``smaller:`` are bytes; structured filters take KB
    and convert exactly once (``x 1024``).
  - Display text longer than ``max_length`` raises
    :class:`~imapquery.errors.QueryTooLong`.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, List, NamedTuple, Optional, Union

from ..errors import InvalidDate, InvalidSizeUnit, QueryError, QueryTooLong
from .criteria import (
    All,
    And,
    CriteriaNode,
    DateBound,
    DateEdge,
    FieldKind,
    Flag,
    FlagKind,
    Leaf,
    Not,
    Or,
    SizeBound,
    SizeEdge,
    combine_all,
    render,
)
from .dates import parse_date
from .inputs import FreeTextQuery, QuickFilterQuery, StructuredFilter, coerce_search_input
from .quick import QUICK_FILTERS, parse_quick_filter, quick_fragment

MAX_QUERY_LENGTH = 1000
DEFAULT_LIMIT = 50
MAX_LIMIT = 1000
KILOBYTE = 1024
ATTACHMENT_CONTENT_TYPE = "multipart/mixed"

_AND_SPLIT = re.compile(r"\s+(?:and|&)\s+", re.IGNORECASE)
_OR_SPLIT = re.compile(r"\s+(?:or|\|)\s+", re.IGNORECASE)
_PREFIXED = re.compile(r"^(?P<prefix>[A-Za-z]+):(?P<value>.*)$", re.DOTALL)

_FIELD_PREFIXES = {
    "from": FieldKind.FROM,
    "to": FieldKind.TO,
    "cc": FieldKind.CC,
    "bcc": FieldKind.BCC,
    "subject": FieldKind.SUBJECT,
    "body": FieldKind.BODY,
    "text": FieldKind.TEXT,
}
_DATE_PREFIXES = {"since": DateEdge.SINCE, "before": DateEdge.BEFORE}
_SIZE_PREFIXES = {"larger": SizeEdge.LARGER, "smaller": SizeEdge.SMALLER}
_KEYWORDS = {
    "unread": Flag(FlagKind.SEEN, False),
    "unseen": Flag(FlagKind.SEEN, False),
    "read": Flag(FlagKind.SEEN, True),
    "seen": Flag(FlagKind.SEEN, True),
    "flagged": Flag(FlagKind.FLAGGED, True),
    "important": Flag(FlagKind.FLAGGED, True),
    "unflagged": Flag(FlagKind.FLAGGED, False),
    "answered": Flag(FlagKind.ANSWERED, True),
    "replied": Flag(FlagKind.ANSWERED, True),
    "unanswered": Flag(FlagKind.ANSWERED, False),
}


class CompiledQuery(NamedTuple):
    """Result of :func:`compile_query`; unpacks as ``(criteria, display_text)``."""

    criteria: CriteriaNode
    display_text: str


def clamp_limit(value: Any, *, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Clamp a requested result count into ``[1, maximum]``.

    Missing, non-numeric and non-positive values fall back to ``default``.
    """

    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    if limit <= 0:
        return default
    return min(limit, maximum)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1].replace('\\"', '"')
    return value


def _parse_size(value: str) -> int:
    cleaned = value.strip()
    if not (cleaned.isascii() and cleaned.isdigit()):
        raise InvalidSizeUnit(
            f"size must be a non-negative whole number of bytes, got {value!r}"
        )
    return int(cleaned)


def _parse_token(token: str, now: datetime) -> CriteriaNode:
    keyword = _KEYWORDS.get(token.lower())
    if keyword is not None:
        return keyword
    match = _PREFIXED.match(token)
    if match is None:
        return Leaf(FieldKind.TEXT, token)
    prefix = match.group("prefix").lower()
    value = _unquote(match.group("value"))
    if not value:
        return Leaf(FieldKind.TEXT, token)
    if prefix in _FIELD_PREFIXES:
        return Leaf(_FIELD_PREFIXES[prefix], value)
    if prefix in _DATE_PREFIXES:
        return DateBound(_DATE_PREFIXES[prefix], parse_date(value, now=now))
    if prefix in _SIZE_PREFIXES:
        return SizeBound(_SIZE_PREFIXES[prefix], _parse_size(value))
    return Leaf(FieldKind.TEXT, token)


def parse_free_text(query: str, *, now: Optional[datetime] = None) -> CriteriaNode:
    """Compile a free-text query string.

    What:
      Recognises ``from:``, ``to:``, ``cc:``, ``bcc:``, ``subject:``,
      ``body:``, ``text:``, ``since:``, ``before:``, ``larger:`` and
      ``smaller:`` prefixes and the flag keywords (``unread``, ``flagged``,
      ``replied``...). An empty query compiles to :class:`All`.

    How:
      Finds the leftmost ``and``/``&`` and the leftmost ``or``/``|``; the
      earlier one decides the connective for a single split of the whole
      string, and each part is compiled recursively. ``a and b or c`` therefore
      becomes ``And(a, Or(b, c))``. This flat split is a known limitation kept
      for compatibility with existing saved queries.

    Raises:
      InvalidDate: For an unparseable ``since:``/``before:`` value.
      InvalidSizeUnit: For a non-integer ``larger:``/``smaller:`` value.
    """

    if now is None:
        now = datetime.now()
    text = (query or "").strip()
    if not text:
        return All()
    and_match = _AND_SPLIT.search(text)
    or_match = _OR_SPLIT.search(text)
    if and_match is None and or_match is None:
        return _parse_token(text, now)
    if and_match is not None and (or_match is None or and_match.start() < or_match.start()):
        splitter, connective = _AND_SPLIT, And
    else:
        splitter, connective = _OR_SPLIT, Or
    parts = [part.strip() for part in splitter.split(text) if part.strip()]
    nodes = [parse_free_text(part, now=now) for part in parts]
    if len(nodes) == 1:
        return nodes[0]
    return connective(tuple(nodes))


def _moment(value: Union[datetime, date, str], now: datetime) -> Union[datetime, date]:
    if isinstance(value, (datetime, date)):
        return value
    return parse_date(value, now=now)


def compile_filter(
    search_filter: StructuredFilter,
    *,
    now: Optional[datetime] = None,
    attachment_content_type: str = ATTACHMENT_CONTENT_TYPE,
) -> CriteriaNode:
    """Compile a :class:`StructuredFilter` into a conjunction.

    Each populated field contributes exactly one node, in declaration order.
    ``larger_than_kb``/``smaller_than_kb`` are multiplied by 1024 here and
    nowhere else. ``has_attachments`` relies on the ``Content-Type`` header
    heuristic because IMAP SEARCH cannot see the body structure.
    """

    if now is None:
        now = datetime.now()
    nodes: List[CriteriaNode] = []
    for field, value in (
        (FieldKind.FROM, search_filter.from_),
        (FieldKind.TO, search_filter.to),
        (FieldKind.CC, search_filter.cc),
        (FieldKind.BCC, search_filter.bcc),
        (FieldKind.SUBJECT, search_filter.subject),
        (FieldKind.BODY, search_filter.body),
    ):
        if value:
            nodes.append(Leaf(field, value.strip()))
    if search_filter.uids:
        try:
            nodes.append(Leaf(FieldKind.UID, tuple(search_filter.uids)))
        except ValueError as exc:
            raise QueryError(str(exc)) from exc
    if search_filter.read_status != "all":
        nodes.append(Flag(FlagKind.SEEN, search_filter.read_status == "read"))
    if search_filter.flagged_status != "all":
        nodes.append(Flag(FlagKind.FLAGGED, search_filter.flagged_status == "flagged"))
    for kind, flag_value in (
        (FlagKind.ANSWERED, search_filter.answered),
        (FlagKind.DELETED, search_filter.deleted),
        (FlagKind.DRAFT, search_filter.draft),
        (FlagKind.RECENT, search_filter.recent),
    ):
        if flag_value is not None:
            nodes.append(Flag(kind, flag_value))
    if search_filter.date_range and search_filter.date_range.lower() not in ("all", "custom"):
        try:
            preset = parse_quick_filter(search_filter.date_range)
        except ValueError as exc:
            raise InvalidDate(f"unknown date range {search_filter.date_range!r}") from exc
        nodes.append(quick_fragment(preset, now=now))
    if search_filter.since is not None:
        nodes.append(DateBound(DateEdge.SINCE, _moment(search_filter.since, now)))
    if search_filter.before is not None:
        nodes.append(DateBound(DateEdge.BEFORE, _moment(search_filter.before, now)))
    if search_filter.larger_than_kb is not None:
        nodes.append(SizeBound(SizeEdge.LARGER, search_filter.larger_than_kb * KILOBYTE))
    if search_filter.smaller_than_kb is not None:
        nodes.append(SizeBound(SizeEdge.SMALLER, search_filter.smaller_than_kb * KILOBYTE))
    if search_filter.has_attachments != "all":
        heuristic = Leaf(FieldKind.HEADER, ("Content-Type", attachment_content_type))
        nodes.append(heuristic if search_filter.has_attachments == "yes" else Not(heuristic))
    return combine_all(nodes)


def fan_out_text(text: str) -> Or:
    """Spread one free-text fragment over the fields people usually mean.

    Fragments containing ``@`` look like addresses and search the address
    headers; anything else searches subject, sender and body.
    """

    if "@" in text:
        fields = (FieldKind.FROM, FieldKind.TO, FieldKind.CC)
    else:
        fields = (FieldKind.SUBJECT, FieldKind.FROM, FieldKind.BODY)
    return Or(tuple(Leaf(field, text) for field in fields))


def compile_quick(query: QuickFilterQuery, *, now: Optional[datetime] = None) -> CriteriaNode:
    nodes: List[CriteriaNode] = [quick_fragment(query.preset, now=now)]
    text = (query.text or "").strip()
    if text:
        nodes.append(fan_out_text(text))
    return combine_all(nodes)


def compile_query(
    search_input: Any,
    *,
    now: Optional[datetime] = None,
    max_length: int = MAX_QUERY_LENGTH,
    attachment_content_type: str = ATTACHMENT_CONTENT_TYPE,
) -> CompiledQuery:
    """Compile any supported search input.

    What:
      Accepts a query string, a mapping, or one of the canonical input models
      and returns the criteria tree together with its display text.

    Why:
      The operation layer and the CLI need one call that validates, compiles
      and renders; errors carry the display text so it can be shown alongside
      the failure.

    How:
      Normalises the input through :func:`coerce_search_input`, dispatches on
      its shape, then enforces ``max_length`` on the display text.

    Args:
      search_input: Query string, mapping, or canonical input model.
      now: Evaluation time for relative dates (defaults to now).
      max_length: Maximum accepted display-text length.
      attachment_content_type: Header value used by the attachment heuristic.

    Returns:
      :class:`CompiledQuery` (``criteria``, ``display_text``).

    Raises:
      QueryError: Any compiler validation failure.
    """

    if now is None:
        now = datetime.now()
    parsed = coerce_search_input(search_input)
    display: Optional[str] = None
    try:
        if isinstance(parsed, FreeTextQuery):
            display = parsed.query.strip()
            _check_length(display, max_length)
            criteria = parse_free_text(display, now=now)
        elif isinstance(parsed, QuickFilterQuery):
            label = QUICK_FILTERS[parsed.preset].label
            text = (parsed.text or "").strip()
            display = f"{label}: {text}" if text else label
            _check_length(display, max_length)
            criteria = compile_quick(parsed, now=now)
        else:
            criteria = compile_filter(
                parsed, now=now, attachment_content_type=attachment_content_type
            )
            display = render(criteria)
            _check_length(display, max_length)
    except QueryError as exc:
        if exc.display_text is None and display:
            exc.display_text = display[:80] + ("..." if len(display) > 80 else "")
        raise
    return CompiledQuery(criteria, display)


def _check_length(display: str, max_length: int) -> None:
    if len(display) > max_length:
        raise QueryTooLong(
            f"search query is too long ({len(display)} characters, max {max_length})"
        )
