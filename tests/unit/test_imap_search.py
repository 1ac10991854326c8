"""
Module: tests/unit/test_imap_search.py

What:
    Check the translation from criteria trees to ``imapclient`` search lists:
    flattened conjunctions, binary ``OR`` folding, negation and charset
    detection.
"""

from datetime import date, datetime

from imapquery.imap.search import build_search, needs_utf8
from imapquery.query.criteria import (
    All,
    And,
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
)


def test_all():
    assert build_search(All()) == ["ALL"]


def test_conjunction_is_flat():
    node = And(
        (
            Leaf(FieldKind.FROM, "alice"),
            Flag(FlagKind.SEEN, False),
            DateBound(DateEdge.SINCE, datetime(2024, 5, 1, 10, 30)),
            SizeBound(SizeEdge.LARGER, 2048),
        )
    )
    assert build_search(node) == ["FROM", "alice", "UNSEEN", "SINCE", date(2024, 5, 1), "LARGER", 2048]


def test_or_folds_into_binary_keys():
    node = Or(
        (
            Leaf(FieldKind.SUBJECT, "foo"),
            Leaf(FieldKind.FROM, "foo"),
            Leaf(FieldKind.BODY, "foo"),
        )
    )
    assert build_search(node) == [
        "OR",
        ["SUBJECT", "foo"],
        ["OR", ["FROM", "foo"], ["BODY", "foo"]],
    ]


def test_or_of_flags_uses_bare_keys():
    node = Or((Flag(FlagKind.FLAGGED, True), Flag(FlagKind.ANSWERED, False)))
    assert build_search(node) == ["OR", "FLAGGED", "UNANSWERED"]


def test_not_header_and_recent_flag():
    heuristic = Leaf(FieldKind.HEADER, ("Content-Type", "multipart/mixed"))
    assert build_search(Not(heuristic)) == ["NOT", ["HEADER", "Content-Type", "multipart/mixed"]]
    assert build_search(Flag(FlagKind.RECENT, False)) == ["OLD"]


def test_uid_set():
    assert build_search(Leaf(FieldKind.UID, (3, 7, 9))) == ["UID", "3,7,9"]


def test_needs_utf8():
    assert not needs_utf8(And((Leaf(FieldKind.SUBJECT, "plain"), Flag(FlagKind.SEEN, True))))
    assert needs_utf8(Or((Leaf(FieldKind.FROM, "a"), Leaf(FieldKind.SUBJECT, "Grüße"))))
    assert needs_utf8(Leaf(FieldKind.HEADER, ("X-Tag", "café")))
