"""
Module: tests/unit/test_params.py

What:
    Validate the boundary normalisation of tool-call and form payloads:
    mailbox locators, UID lists, limits and flat filter parameters.
"""

import pytest

from imapquery.errors import InvalidField, QueryError
from imapquery.utils.params import filter_from_params, limit_from_params, mailbox_name, parse_uid_list


def test_mailbox_name_shapes():
    assert mailbox_name("Archive/2024") == "Archive/2024"
    assert mailbox_name({"mode": "list", "value": "Sent"}) == "Sent"
    assert mailbox_name(None) == "INBOX"
    assert mailbox_name("  ", default="Drafts") == "Drafts"
    with pytest.raises(QueryError):
        mailbox_name(42)


def test_parse_uid_list():
    assert parse_uid_list("3, 1,2") == [3, 1, 2]
    assert parse_uid_list([5, "6"]) == [5, 6]
    assert parse_uid_list(7) == [7]
    assert parse_uid_list(None) == []
    for bad in ("1,x", "0", [-2]):
        with pytest.raises(QueryError):
            parse_uid_list(bad)


def test_limit_from_params():
    assert limit_from_params({"limit": 20}) == 20
    assert limit_from_params({"Maximum_Results": {"mode": "x", "value": "5000"}}) == 1000
    assert limit_from_params({}) == 50


def test_direct_fields_win_over_collections():
    spec = filter_from_params(
        {
            "From_Email_Address": "alice@example.test",
            "emailSearchFilters": {"from": "ignored", "subject": "report", "cc": "carol", "uid": "4,5"},
            "emailDateRange": {"since": "2024-05-01"},
        }
    )
    assert spec.from_ == "alice@example.test"
    assert spec.subject == "report"
    assert spec.cc == "carol"
    assert spec.uids == [4, 5]
    assert spec.since == "2024-05-01"


def test_flags_collection():
    spec = filter_from_params({"emailFlags": {"seen": False, "flagged": True, "recent": False, "draft": True}})
    assert spec.read_status == "unread"
    assert spec.flagged_status == "flagged"
    assert spec.recent is False
    assert spec.draft is True


def test_unread_only_overrides_seen_flag():
    spec = filter_from_params({"Show_Unread_Only": True, "emailFlags": {"seen": True}})
    assert spec.read_status == "unread"


def test_date_range_all_is_dropped_and_blank_ignored():
    spec = filter_from_params({"dateRange": "all", "subjectFilter": "   ", "hasAttachments": "yes"})
    assert spec.date_range is None
    assert spec.subject is None
    assert spec.has_attachments == "yes"


def test_unknown_parameter():
    with pytest.raises(InvalidField):
        filter_from_params({"Colour": "blue"})
