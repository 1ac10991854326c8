"""Translate criteria trees into ``imapclient`` search criteria.

What:
  Provide a deterministic mapping from :mod:`imapquery.query.criteria` nodes
  to the nested criteria lists consumed by :meth:`imapclient.IMAPClient.search`.

Why:
  Keeping the translation centralised ensures every search path (free text,
  structured filters, quick presets) produces the same wire criteria and makes
  the tricky parts, binary ``OR`` and negated flags, testable without a
  server.

How:
  Walks the tree recursively. Conjunctions are flattened into the enclosing
  list (IMAP ANDs adjacent keys), compound operands are wrapped in nested
  lists which ``imapclient`` renders as parenthesised groups, and n-ary ``Or``
  folds into right-nested binary ``OR`` keys.

Interfaces:
  :func:`build_search`, :func:`needs_utf8`.

Invariants & Safety:
  - Only the closed node set is translated; unknown nodes raise ``TypeError``
    so nothing user-supplied is ever spliced into the command as a raw key.
  - Flag tests always emit the RFC 3501 positive/negative key pair
    (``SEEN``/``UNSEEN``, ``RECENT``/``OLD``...).
"""
from __future__ import annotations

from datetime import datetime
from typing import List

from ..query.criteria import (
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
    iter_nodes,
)

_FIELD_KEYS = {
    FieldKind.FROM: "FROM",
    FieldKind.TO: "TO",
    FieldKind.CC: "CC",
    FieldKind.BCC: "BCC",
    FieldKind.SUBJECT: "SUBJECT",
    FieldKind.BODY: "BODY",
    FieldKind.TEXT: "TEXT",
}

_FLAG_KEYS = {
    FlagKind.SEEN: ("SEEN", "UNSEEN"),
    FlagKind.FLAGGED: ("FLAGGED", "UNFLAGGED"),
    FlagKind.ANSWERED: ("ANSWERED", "UNANSWERED"),
    FlagKind.DELETED: ("DELETED", "UNDELETED"),
    FlagKind.DRAFT: ("DRAFT", "UNDRAFT"),
    FlagKind.RECENT: ("RECENT", "OLD"),
}


def build_search(node: CriteriaNode) -> List[object]:
    """Convert a criteria tree into an ``imapclient`` criteria list.

    What:
      Produces a flat-at-the-top list such as
      ``['UNSEEN', 'SINCE', date(2024, 1, 1), 'OR', ['FROM', 'a'], ['FROM', 'b']]``.

    Why:
      IMAP search syntax is positional and picky about argument formats. This
      helper keeps date objects as :class:`datetime.date` (``imapclient``
      formats them) and sizes as integers.

    Args:
      node: Compiled criteria tree.

    Returns:
      Criteria list suitable for ``IMAPClient.search``.
    """

    return _emit(node)


def _emit(node: CriteriaNode) -> List[object]:
    if isinstance(node, All):
        return ["ALL"]
    if isinstance(node, Leaf):
        if node.field is FieldKind.UID:
            return ["UID", ",".join(str(uid) for uid in node.value)]
        if node.field is FieldKind.HEADER:
            name, value = node.value  # type: ignore[misc]
            return ["HEADER", name, value]
        return [_FIELD_KEYS[node.field], node.value]
    if isinstance(node, Flag):
        positive, negative = _FLAG_KEYS[node.kind]
        return [positive if node.is_set else negative]
    if isinstance(node, DateBound):
        moment = node.at.date() if isinstance(node.at, datetime) else node.at
        return ["SINCE" if node.edge is DateEdge.SINCE else "BEFORE", moment]
    if isinstance(node, SizeBound):
        return ["LARGER" if node.edge is SizeEdge.LARGER else "SMALLER", node.size]
    if isinstance(node, And):
        criteria: List[object] = []
        for child in node.children:
            criteria.extend(_emit(child))
        return criteria
    if isinstance(node, Not):
        return ["NOT", _operand(node.child)]
    if isinstance(node, Or):
        return _fold_or(list(node.children))
    raise TypeError(f"unsupported criteria node: {node!r}")


def _operand(node: CriteriaNode) -> object:
    """Return ``node`` as a single search-key operand."""

    emitted = _emit(node)
    if isinstance(node, (Flag, All)):
        return emitted[0]
    return emitted


def _fold_or(children: List[CriteriaNode]) -> List[object]:
    if len(children) == 1:
        return _emit(children[0])
    head, tail = children[0], children[1:]
    right = _fold_or(tail) if len(tail) > 1 else _operand(tail[0])
    return ["OR", _operand(head), right]


def needs_utf8(node: CriteriaNode) -> bool:
    """Return ``True`` when any string operand is outside US-ASCII."""

    for item in iter_nodes(node):
        if isinstance(item, Leaf) and item.field is not FieldKind.UID:
            values = item.value if item.field is FieldKind.HEADER else (item.value,)
            if any(not str(value).isascii() for value in values):
                return True
    return False
