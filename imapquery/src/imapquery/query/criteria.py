"""Immutable boolean search-expression tree.

What:
  Model a search intent as a small tree of frozen dataclasses: field leaves,
  flag tests, date and size bounds, and the ``And``/``Or``/``Not``/``All``
  connectives.

Why:
  The compiler accepts three loosely-shaped inputs (free text, structured
  filters, quick presets). Funnelling all of them into one closed node set
  keeps the IMAP translation in :mod:`imapquery.imap.search` exhaustive and
  makes compiled queries comparable in tests.

How:
  Each node is a frozen dataclass; compound nodes store their children as
  tuples and refuse to be built empty. :func:`combine_all` collapses trivial
  conjunctions, :func:`render` produces the operator-facing display string and
  :func:`to_dict` a JSON-friendly view.

Interfaces:
  :class:`FieldKind`, :class:`FlagKind`, :class:`DateEdge`, :class:`SizeEdge`,
  :class:`Leaf`, :class:`Flag`, :class:`DateBound`, :class:`SizeBound`,
  :class:`And`, :class:`Or`, :class:`Not`, :class:`All`, :func:`combine_all`,
  :func:`iter_nodes`, :func:`render`, :func:`to_dict`.

Invariants & Safety:
  - ``And`` and ``Or`` always hold at least one child.
  - Nodes are never mutated after construction, so a compiled tree can be
    shared freely between threads or reused for logging.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Tuple, Union


class FieldKind(str, Enum):
    """Message fields addressable by a :class:`Leaf`."""

    FROM = "from"
    TO = "to"
    CC = "cc"
    BCC = "bcc"
    SUBJECT = "subject"
    BODY = "body"
    TEXT = "text"
    UID = "uid"
    HEADER = "header"


class FlagKind(str, Enum):
    """System flags that can be tested for presence or absence."""

    SEEN = "seen"
    FLAGGED = "flagged"
    ANSWERED = "answered"
    DELETED = "deleted"
    DRAFT = "draft"
    RECENT = "recent"


class DateEdge(str, Enum):
    SINCE = "since"
    BEFORE = "before"


class SizeEdge(str, Enum):
    LARGER = "larger"
    SMALLER = "smaller"


_FLAG_WORDS = {
    FlagKind.SEEN: ("seen", "unseen"),
    FlagKind.FLAGGED: ("flagged", "unflagged"),
    FlagKind.ANSWERED: ("answered", "unanswered"),
    FlagKind.DELETED: ("deleted", "undeleted"),
    FlagKind.DRAFT: ("draft", "undraft"),
    FlagKind.RECENT: ("recent", "old"),
}


@dataclass(frozen=True)
class Leaf:
    """Match ``value`` against a message field.

    ``UID`` leaves carry a tuple of integers and ``HEADER`` leaves a
    ``(name, value)`` pair; every other field carries a string.
    """

    field: FieldKind
    value: Union[str, Tuple[int, ...], Tuple[str, str]]

    def __post_init__(self) -> None:
        if self.field is FieldKind.UID:
            uids = tuple(int(uid) for uid in self.value)  # type: ignore[union-attr]
            if not uids:
                raise ValueError("UID leaf requires at least one UID")
            if any(uid <= 0 for uid in uids):
                raise ValueError("UIDs must be positive integers")
            object.__setattr__(self, "value", uids)
        elif self.field is FieldKind.HEADER:
            if not isinstance(self.value, tuple) or len(self.value) != 2:
                raise ValueError("HEADER leaf requires a (name, value) pair")
            name, text = self.value
            if not str(name).strip():
                raise ValueError("HEADER leaf requires a header name")
            object.__setattr__(self, "value", (str(name), str(text)))
        elif not isinstance(self.value, str):
            raise ValueError(f"{self.field.value} leaf requires a string value")


@dataclass(frozen=True)
class Flag:
    """Test whether ``kind`` is set (``is_set=True``) or cleared."""

    kind: FlagKind
    is_set: bool = True


@dataclass(frozen=True)
class DateBound:
    """Restrict the internal date to ``SINCE``/``BEFORE`` a moment."""

    edge: DateEdge
    at: Union[date, datetime]


@dataclass(frozen=True)
class SizeBound:
    """Restrict the RFC822 size in bytes."""

    edge: SizeEdge
    size: int

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError("size bounds must be non-negative")


@dataclass(frozen=True)
class And:
    children: Tuple["CriteriaNode", ...]

    def __post_init__(self) -> None:
        children = tuple(self.children)
        if not children:
            raise ValueError("And requires at least one child")
        object.__setattr__(self, "children", children)


@dataclass(frozen=True)
class Or:
    children: Tuple["CriteriaNode", ...]

    def __post_init__(self) -> None:
        children = tuple(self.children)
        if not children:
            raise ValueError("Or requires at least one child")
        object.__setattr__(self, "children", children)


@dataclass(frozen=True)
class Not:
    child: "CriteriaNode"


@dataclass(frozen=True)
class All:
    """Match every message in the mailbox."""


CriteriaNode = Union[Leaf, Flag, DateBound, SizeBound, And, Or, Not, All]


def combine_all(nodes: Iterable[CriteriaNode]) -> CriteriaNode:
    """Join ``nodes`` under an implicit conjunction.

    ``All`` entries contribute nothing and are dropped, nested ``And`` nodes
    are spliced in; an empty input yields ``All`` and a single surviving node
    is returned unwrapped.
    """

    kept: list = []
    for node in nodes:
        if isinstance(node, All):
            continue
        if isinstance(node, And):
            kept.extend(node.children)
        else:
            kept.append(node)
    if not kept:
        return All()
    if len(kept) == 1:
        return kept[0]
    return And(tuple(kept))


def iter_nodes(node: CriteriaNode) -> Iterator[CriteriaNode]:
    """Yield ``node`` and all of its descendants depth-first."""

    yield node
    if isinstance(node, (And, Or)):
        for child in node.children:
            yield from iter_nodes(child)
    elif isinstance(node, Not):
        yield from iter_nodes(node.child)


def _format_moment(moment: Union[date, datetime]) -> str:
    if isinstance(moment, datetime):
        if moment.hour == moment.minute == moment.second == moment.microsecond == 0:
            return moment.date().isoformat()
        return moment.replace(microsecond=0).isoformat()
    return moment.isoformat()


def _quote(value: str) -> str:
    if not value or any(ch.isspace() for ch in value):
        return '"' + value.replace('"', '\\"') + '"'
    return value


def render(node: CriteriaNode) -> str:
    """Render ``node`` as the display text shown next to search results.

    The output reuses the free-text token vocabulary (``from:x``, ``unseen``,
    ``since:2024-01-01``) so that operators can read, and usually re-type, what
    was sent to the server.
    """

    if isinstance(node, All):
        return "all"
    if isinstance(node, Leaf):
        if node.field is FieldKind.UID:
            return "uid:" + ",".join(str(uid) for uid in node.value)
        if node.field is FieldKind.HEADER:
            name, value = node.value  # type: ignore[misc]
            return f"header:{name}={_quote(value)}"
        return f"{node.field.value}:{_quote(str(node.value))}"
    if isinstance(node, Flag):
        on, off = _FLAG_WORDS[node.kind]
        return on if node.is_set else off
    if isinstance(node, DateBound):
        return f"{node.edge.value}:{_format_moment(node.at)}"
    if isinstance(node, SizeBound):
        return f"{node.edge.value}:{node.size}"
    if isinstance(node, Not):
        return f"not {_render_operand(node.child)}"
    if isinstance(node, And):
        return " and ".join(_render_operand(child) for child in node.children)
    if isinstance(node, Or):
        return " or ".join(_render_operand(child) for child in node.children)
    raise TypeError(f"unsupported criteria node: {node!r}")


def _render_operand(node: CriteriaNode) -> str:
    text = render(node)
    if isinstance(node, (And, Or)) and len(node.children) > 1:
        return f"({text})"
    return text


def to_dict(node: CriteriaNode) -> Dict[str, Any]:
    """Return a JSON-serialisable description of ``node``."""

    if isinstance(node, All):
        return {"all": True}
    if isinstance(node, Leaf):
        if node.field is FieldKind.UID:
            return {"field": node.field.value, "value": list(node.value)}
        if node.field is FieldKind.HEADER:
            name, value = node.value  # type: ignore[misc]
            return {"field": node.field.value, "name": name, "value": value}
        return {"field": node.field.value, "value": node.value}
    if isinstance(node, Flag):
        return {"flag": node.kind.value, "set": node.is_set}
    if isinstance(node, DateBound):
        return {node.edge.value: node.at.isoformat()}
    if isinstance(node, SizeBound):
        return {node.edge.value: node.size}
    if isinstance(node, Not):
        return {"not": to_dict(node.child)}
    if isinstance(node, And):
        return {"and": [to_dict(child) for child in node.children]}
    if isinstance(node, Or):
        return {"or": [to_dict(child) for child in node.children]}
    raise TypeError(f"unsupported criteria node: {node!r}")
