"""
Module: tests/unit/test_criteria.py

What:
    Exercise the criteria tree: construction invariants, conjunction
    collapsing and the display/JSON renderers.

Why:
    Every search input funnels into these nodes; a node that accepts an empty
    conjunction or renders ambiguously would leak malformed SEARCH commands.
"""

from datetime import date, datetime

import pytest

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
    combine_all,
    iter_nodes,
    render,
    to_dict,
)


def test_empty_connectives_are_rejected():
    with pytest.raises(ValueError):
        And(())
    with pytest.raises(ValueError):
        Or(())


def test_nodes_are_immutable():
    leaf = Leaf(FieldKind.FROM, "alice")
    with pytest.raises(AttributeError):
        leaf.value = "bob"  # type: ignore[misc]


def test_uid_leaf_normalises_and_validates():
    assert Leaf(FieldKind.UID, ["3", 4]).value == (3, 4)
    with pytest.raises(ValueError):
        Leaf(FieldKind.UID, (0,))
    with pytest.raises(ValueError):
        Leaf(FieldKind.UID, ())


def test_header_leaf_requires_pair():
    with pytest.raises(ValueError):
        Leaf(FieldKind.HEADER, "Content-Type")
    assert Leaf(FieldKind.HEADER, ("X-Tag", "a")).value == ("X-Tag", "a")


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        SizeBound(SizeEdge.LARGER, -1)


def test_combine_all_collapses():
    alice = Leaf(FieldKind.FROM, "alice")
    unread = Flag(FlagKind.SEEN, False)
    assert combine_all([]) == All()
    assert combine_all([All(), alice]) == alice
    assert combine_all([And((alice, unread)), All()]) == And((alice, unread))


def test_render_uses_token_vocabulary():
    node = And(
        (
            Leaf(FieldKind.FROM, "alice"),
            Or((Leaf(FieldKind.SUBJECT, "q3 report"), Flag(FlagKind.FLAGGED, True))),
            DateBound(DateEdge.SINCE, datetime(2024, 1, 1)),
            Not(Flag(FlagKind.SEEN, True)),
        )
    )
    assert render(node) == 'from:alice and (subject:"q3 report" or flagged) and since:2024-01-01 and not seen'


def test_to_dict_is_json_friendly():
    node = Or((Leaf(FieldKind.UID, (5,)), DateBound(DateEdge.BEFORE, date(2024, 2, 1))))
    assert to_dict(node) == {"or": [{"field": "uid", "value": [5]}, {"before": "2024-02-01"}]}
    assert to_dict(All()) == {"all": True}


def test_iter_nodes_visits_every_descendant():
    inner = Leaf(FieldKind.TO, "bob")
    tree = Not(And((inner, SizeBound(SizeEdge.SMALLER, 10))))
    assert inner in list(iter_nodes(tree))
    assert len(list(iter_nodes(tree))) == 4
