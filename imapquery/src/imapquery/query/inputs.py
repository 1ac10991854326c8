"""Canonical search-input shapes accepted by the compiler.

What:
  Pydantic models for the three ways a search can be expressed: a free-text
  query, a structured filter object, and a quick-filter preset with optional
  text. :func:`coerce_search_input` turns loosely-typed payloads into one of
  them.

Why:
  Payloads arrive from the CLI, from JSON tool calls and from Python callers.
  Validating them once at the boundary means the compiler only ever sees the
  three canonical shapes, and typos in field names surface as
  :class:`~imapquery.errors.InvalidField` instead of being ignored.

How:
  Models forbid unknown keys. Validation errors from pydantic are translated
  into the package's :class:`~imapquery.errors.QueryError` hierarchy.

Interfaces:
  :class:`FreeTextQuery`, :class:`StructuredFilter`,
  :class:`QuickFilterQuery`, :data:`SearchInput`, :func:`coerce_search_input`.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as _PydanticValidationError
from pydantic import field_validator

from ..errors import InvalidField, InvalidSizeUnit, QueryError
from .quick import QuickFilter, parse_quick_filter


class FreeTextQuery(BaseModel):
    """A ``field:value`` query string such as ``from:bob and unread``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["query"] = "query"
    query: str = ""


class QuickFilterQuery(BaseModel):
    """A named preset, optionally narrowed by a free-text fragment."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["quick"] = "quick"
    preset: QuickFilter = QuickFilter.ALL
    text: Optional[str] = None

    @field_validator("preset", mode="before")
    @classmethod
    def _resolve_preset(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_quick_filter(value)
        return value


class StructuredFilter(BaseModel):
    """Named search fields combined under an implicit conjunction.

    Size thresholds are entered in kilobytes and converted to bytes by the
    compiler; ``since``/``before`` accept anything :func:`parse_date` accepts.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    kind: Literal["filter"] = "filter"
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    cc: Optional[str] = None
    bcc: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    uids: Optional[List[int]] = None
    read_status: Literal["all", "read", "unread"] = "all"
    flagged_status: Literal["all", "flagged", "unflagged"] = "all"
    answered: Optional[bool] = None
    deleted: Optional[bool] = None
    draft: Optional[bool] = None
    recent: Optional[bool] = None
    date_range: Optional[str] = None
    since: Optional[Union[datetime, date, str]] = None
    before: Optional[Union[datetime, date, str]] = None
    larger_than_kb: Optional[int] = Field(default=None, ge=0)
    smaller_than_kb: Optional[int] = Field(default=None, ge=0)
    has_attachments: Literal["all", "yes", "no"] = "all"

    @field_validator("uids", mode="before")
    @classmethod
    def _split_uids(cls, value: Any) -> Any:
        if isinstance(value, str):
            chunks = [chunk.strip() for chunk in value.split(",")]
            return [chunk for chunk in chunks if chunk] or None
        if isinstance(value, int):
            return [value]
        return value

    @field_validator("from_", "to", "cc", "bcc", "subject", "body", "date_range", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


SearchInput = Union[FreeTextQuery, StructuredFilter, QuickFilterQuery]

_SIZE_FIELDS = ("larger_than_kb", "smaller_than_kb")


def _validate(model: type, payload: Mapping[str, Any]) -> SearchInput:
    try:
        return model.model_validate(dict(payload))
    except _PydanticValidationError as exc:
        unknown = [
            ".".join(str(part) for part in error["loc"])
            for error in exc.errors()
            if error.get("type") == "extra_forbidden"
        ]
        if unknown:
            raise InvalidField(f"unknown search field(s): {', '.join(sorted(unknown))}") from exc
        sizes = [
            str(error["loc"][0])
            for error in exc.errors()
            if error["loc"] and error["loc"][0] in _SIZE_FIELDS
        ]
        if sizes:
            raise InvalidSizeUnit(f"{sizes[0]} must be a non-negative number of kilobytes") from exc
        raise QueryError(f"invalid search input: {exc}") from exc


def coerce_search_input(raw: Any) -> SearchInput:
    """Normalise ``raw`` into one of the canonical :data:`SearchInput` shapes.

    What:
      ``None`` and strings become :class:`FreeTextQuery`; mappings are routed
      by their ``kind`` key, or, when absent, by the presence of ``query`` or
      ``preset``; everything else mapping-shaped is a :class:`StructuredFilter`.

    Raises:
      InvalidField: When a mapping carries keys the target shape does not know.
      QueryError: For any other validation failure.
    """

    if isinstance(raw, (FreeTextQuery, StructuredFilter, QuickFilterQuery)):
        return raw
    if raw is None:
        return FreeTextQuery()
    if isinstance(raw, str):
        return FreeTextQuery(query=raw)
    if not isinstance(raw, Mapping):
        raise QueryError(f"unsupported search input type: {type(raw).__name__}")
    kind = raw.get("kind")
    if kind == "query" or (kind is None and set(raw) == {"query"}):
        return _validate(FreeTextQuery, raw)
    if kind == "quick" or (kind is None and "preset" in raw):
        return _validate(QuickFilterQuery, raw)
    return _validate(StructuredFilter, raw)
