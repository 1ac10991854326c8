"""Normalise tool-call and form parameters before they reach the compiler.

What:
  Map the loosely-typed parameter payloads produced by agent tool calls and
  form-style front ends (mailbox locators, flat ``Subject_Contains`` style
  fields, nested flag and filter collections) onto canonical values:
  a mailbox name, a UID list, a limit and a
  :class:`~imapquery.query.inputs.StructuredFilter`.

Why:
  The same logical field shows up as a plain string in one caller and as a
  ``{"mode": ..., "value": ...}`` locator in another. Resolving those shapes
  once here keeps the compiler's inputs strictly typed.

How:
  Every scalar passes through :func:`_scalar`, which unwraps locators. Field
  sources are applied in precedence order: direct fields first, then the
  ``emailSearchFilters``/``emailDateRange`` collections as fallbacks, matching
  how front ends layer "simple" and "advanced" inputs.

Interfaces:
  :func:`mailbox_name`, :func:`parse_uid_list`, :func:`limit_from_params`,
  :func:`filter_from_params`.

Invariants & Safety:
  - Unknown top-level keys raise :class:`~imapquery.errors.InvalidField`.
  - Blank strings are treated as absent.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from ..errors import InvalidField, QueryError
from ..query.compiler import clamp_limit
from ..query.inputs import StructuredFilter, coerce_search_input


DIRECT_FIELDS = {
    "From_Email_Address": "from",
    "To_Email_Address": "to",
    "Subject_Contains": "subject",
    "Email_Content_Contains": "body",
    "Since_Date": "since",
    "Before_Date": "before",
    "fromEmail": "from",
    "toEmail": "to",
    "subjectFilter": "subject",
    "bodyText": "body",
    "sinceDate": "since",
    "beforeDate": "before",
    "readStatus": "read_status",
    "flaggedStatus": "flagged_status",
    "dateRange": "date_range",
    "hasAttachments": "has_attachments",
}

SEARCH_FILTER_FIELDS = {
    "from": "from",
    "to": "to",
    "subject": "subject",
    "text": "body",
}

PASSTHROUGH_KEYS = frozenset(
    {
        "mailbox",
        "limit",
        "Maximum_Results",
        "interfaceMode",
        "Show_Unread_Only",
        "emailFlags",
        "emailSearchFilters",
        "emailDateRange",
    }
)


def _scalar(value: Any) -> Any:
    """Unwrap ``{"mode": ..., "value": ...}`` locators and blank strings."""

    if isinstance(value, Mapping) and "value" in value:
        value = value["value"]
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def mailbox_name(value: Any, default: str = "INBOX") -> str:
    """Return the mailbox path from a string or a resource locator."""

    resolved = _scalar(value)
    if resolved is None:
        return default
    if not isinstance(resolved, str):
        raise QueryError(f"mailbox must be a string, got {type(resolved).__name__}")
    return resolved


def parse_uid_list(value: Any) -> List[int]:
    """Parse ``"3, 1,2"``, ``[3, 1, 2]`` or ``3`` into a list of positive UIDs.

    Raises:
      QueryError: When an item is not a positive integer.
    """

    resolved = _scalar(value)
    if resolved is None:
        return []
    items: Iterable[Any]
    if isinstance(resolved, str):
        items = [chunk.strip() for chunk in resolved.split(",") if chunk.strip()]
    elif isinstance(resolved, (list, tuple)):
        items = resolved
    else:
        items = [resolved]
    uids: List[int] = []
    for item in items:
        try:
            uid = int(item)
        except (TypeError, ValueError) as exc:
            raise QueryError(f"invalid UID: {item!r}") from exc
        if uid <= 0:
            raise QueryError(f"invalid UID: {item!r}")
        uids.append(uid)
    return uids


def limit_from_params(params: Mapping[str, Any], default: int = 50) -> int:
    """Read ``limit``/``Maximum_Results`` and clamp it."""

    raw = _scalar(params.get("limit", params.get("Maximum_Results")))
    return clamp_limit(raw, default=default)


def _flag_fields(flags: Mapping[str, Any], unread_only: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for name in ("answered", "deleted", "draft", "recent"):
        if name in flags:
            fields[name] = bool(flags[name])
    if "flagged" in flags:
        fields["flagged_status"] = "flagged" if flags["flagged"] else "unflagged"
    if "seen" in flags and not unread_only:
        fields["read_status"] = "read" if flags["seen"] else "unread"
    return fields


def filter_from_params(params: Mapping[str, Any]) -> StructuredFilter:
    """Build a :class:`StructuredFilter` from a flat parameter payload.

    What:
      Accepts direct fields (``From_Email_Address``, ``subjectFilter``...),
      ``Show_Unread_Only``, and the ``emailFlags``, ``emailSearchFilters`` and
      ``emailDateRange`` collections.

    How:
      Direct fields win. Collection values only fill fields still unset,
      except ``cc``, ``bcc`` and ``uid`` which only exist in the collection.
      ``recent: false`` means "not recent" (``OLD``). A ``seen`` flag is
      ignored when ``Show_Unread_Only`` is set.

    Raises:
      InvalidField: For keys outside the known parameter set.
      QueryError: For values the filter model rejects.
    """

    unknown = sorted(key for key in params if key not in DIRECT_FIELDS and key not in PASSTHROUGH_KEYS)
    if unknown:
        raise InvalidField(f"unknown search parameter(s): {', '.join(unknown)}")

    fields: Dict[str, Any] = {}
    for key, target in DIRECT_FIELDS.items():
        value = _scalar(params.get(key))
        if value is not None and target not in fields:
            fields[target] = value

    unread_only = bool(_scalar(params.get("Show_Unread_Only")))
    if unread_only:
        fields["read_status"] = "unread"

    for key, value in _flag_fields(params.get("emailFlags") or {}, unread_only).items():
        fields.setdefault(key, value)

    dates = params.get("emailDateRange") or {}
    for key in ("since", "before"):
        value = _scalar(dates.get(key))
        if value is not None:
            fields.setdefault(key, value)

    filters = params.get("emailSearchFilters") or {}
    for key, target in SEARCH_FILTER_FIELDS.items():
        value = _scalar(filters.get(key))
        if value is not None:
            fields.setdefault(target, value)
    for key in ("cc", "bcc"):
        value = _scalar(filters.get(key))
        if value is not None:
            fields[key] = value
    uids = parse_uid_list(filters.get("uid"))
    if uids:
        fields["uids"] = uids

    if fields.get("date_range") == "all":
        fields.pop("date_range")
    fields["kind"] = "filter"
    return coerce_search_input(fields)  # type: ignore[return-value]
