"""
Module: tests/unit/test_operations.py

What:
    Drive the operation layer end to end against the in-memory backend:
    search with reconciliation, newest-first listing, selectable record
    sections, full message retrieval, part listing and downloads.

Why:
    These functions sequence compile, SEARCH, reconcile, FETCH and resolve.
    The tests pin the observable contract: ordering, drop accounting and the
    JSON shapes the CLI prints.
"""

import base64
from datetime import datetime

import pytest

from fakes import attachment, binary_leaf, inline, multipart, text_leaf
from imapquery.errors import InvalidDate, InvalidField, TransportFailure, UidLookupError
from imapquery.imap.operations import (
    IncludePart,
    download_attachments,
    download_email,
    get_email,
    get_emails_list,
    list_emails,
    list_mailboxes,
    list_parts,
    mailbox_status,
    search_emails,
)

NOW = datetime(2024, 5, 15, 12, 0)


def _with_attachment(backend, **kwargs):
    structure = multipart(
        "mixed",
        multipart("alternative", text_leaf("plain"), text_leaf("html", encoding="quoted-printable")),
        binary_leaf("application", "pdf", disposition=attachment("q3.pdf")),
        binary_leaf("image", "png", disposition=inline("logo.png")),
    )
    sections = {
        "1.1": b"Plain body",
        "1.2": b"<p>caf=C3=A9</p>",
        "2": base64.b64encode(b"%PDF-1.4"),
        "3": base64.b64encode(b"\x89PNG"),
    }
    return backend.add_message(bodystructure=structure, sections=sections, **kwargs)


def test_search_returns_newest_first(imap_client):
    client, backend = imap_client
    for index in range(4):
        backend.add_message(subject=f"report {index}", flags=(b"\\Seen",) if index == 0 else ())
    outcome = search_emails(client, "INBOX", "subject:report", limit=3, now=NOW)
    assert [message.uid for message in outcome.messages] == [4, 3, 2]
    assert outcome.total_found == 4
    assert outcome.dropped == 0
    payload = outcome.as_dict()
    assert payload["summary"]["query"] == "subject:report"
    assert payload["summary"]["criteria"] == {"field": "subject", "value": "report"}
    assert payload["summary"]["returned"] == 3
    first = payload["messages"][0]
    assert first["subject"] == "report 3"
    assert first["from"] == [{"name": None, "address": "alice@example.test"}]
    assert first["seen"] is False
    assert backend.search_calls[-1][0] == ["SUBJECT", "report"]


def test_search_counts_vanished_messages(imap_client):
    client, backend = imap_client
    uids = [backend.add_message() for _ in range(3)]
    backend.expunge_after_search = {uids[1]}
    outcome = search_emails(client, {"mode": "list", "value": "INBOX"}, {"preset": "unseen"}, now=NOW)
    assert [message.uid for message in outcome.messages] == [uids[2], uids[0]]
    assert outcome.dropped == 1
    assert outcome.display_text == "Unread"


def test_search_with_no_hits(imap_client):
    client, backend = imap_client
    backend.search_result = []
    outcome = search_emails(client, None, "from:nobody", now=NOW)
    assert outcome.messages == []
    assert outcome.total_found == 0


def test_search_compile_errors_happen_before_io(imap_client):
    client, backend = imap_client
    with pytest.raises(InvalidDate):
        search_emails(client, "INBOX", "since:someday", now=NOW)
    assert backend.search_calls == []


def test_search_transport_failure_carries_query(imap_client):
    client, backend = imap_client
    backend.fail_on.add("search")
    with pytest.raises(TransportFailure) as excinfo:
        search_emails(client, "INBOX", "from:alice", now=NOW)
    assert "from:alice" in str(excinfo.value)


def test_list_emails_uses_sequence_range(imap_client):
    client, backend = imap_client
    for index in range(5):
        backend.add_message(subject=f"m{index}", flags=(b"\\Seen",) if index < 2 else ())
    outcome = list_emails(client, "INBOX", limit=2)
    assert [message.uid for message in outcome.messages] == [5, 4]
    assert outcome.fetch_range == "4:5"
    assert outcome.total_messages == 5
    assert outcome.unseen == 3
    assert outcome.as_dict()["messages"][0]["sequence"] == 5
    assert backend.use_uid is True


def test_list_emails_empty_mailbox(imap_client):
    client, _backend = imap_client
    outcome = list_emails(client, "Archive/2024")
    assert outcome.messages == []
    assert outcome.as_dict()["summary"]["fetch_range"] is None


def test_get_emails_list_optional_sections(imap_client):
    client, backend = imap_client
    uid = _with_attachment(backend, subject="Quarterly")
    outcome = get_emails_list(
        client,
        "INBOX",
        "subject:Quarterly",
        include_parts=["textContent", IncludePart.HTML_CONTENT, "attachmentsInfo", "flags", "headers"],
        headers_to_include=["Subject"],
        now=NOW,
    )
    (record,) = outcome.as_dict()["emails"]
    assert record["uid"] == uid
    assert record["folder"] == "INBOX"
    assert record["text_content"] == "Plain body"
    assert record["html_content"] == "<p>café</p>"
    assert [item["filename"] for item in record["attachments_info"]] == ["q3.pdf"]
    assert record["flags"] == []
    assert "size" not in record
    assert "body_structure" not in record
    assert record["headers"]["subject"] == ["Quarterly"]


def test_get_emails_list_rejects_unknown_section(imap_client):
    client, _backend = imap_client
    with pytest.raises(ValueError):
        get_emails_list(client, "INBOX", None, include_parts=["thumbnail"])


def test_get_email_parses_message(imap_client):
    client, backend = imap_client
    uid = backend.add_message(subject="Hi", cc=("carol@example.test",), flags=(b"\\Seen",), body="Body text")
    detail = get_email(client, "INBOX", uid).as_dict()
    assert detail["subject"] == "Hi"
    assert detail["cc"] == [{"name": None, "address": "carol@example.test"}]
    assert detail["bcc"] == []
    assert detail["text"].strip() == "Body text"
    assert detail["seen"] is True
    with pytest.raises(UidLookupError):
        get_email(client, "INBOX", 999)


def test_list_parts(imap_client):
    client, backend = imap_client
    uid = _with_attachment(backend)
    listing = list_parts(client, "INBOX", uid).as_dict()
    assert [part["part_id"] for part in listing["parts"]] == ["1.1", "1.2", "2", "3"]
    assert listing["text_part_id"] == "1.1"
    assert listing["html_part_id"] == "1.2"
    assert [part["part_id"] for part in listing["attachments"]] == ["2"]
    assert listing["inline"] == []
    with_inline = list_parts(client, "INBOX", uid, include_inline=True).as_dict()
    assert [part["filename"] for part in with_inline["inline"]] == ["logo.png"]


def test_list_parts_of_single_part_message(imap_client):
    client, backend = imap_client
    uid = backend.add_message(bodystructure=text_leaf("plain"))
    listing = list_parts(client, "INBOX", uid)
    assert [info.part_id for info in listing.parts] == ["TEXT"]
    assert listing.summary.text_part_id == "TEXT"


def test_download_all_attachments(imap_client):
    client, backend = imap_client
    uid = _with_attachment(backend)
    downloads = download_attachments(client, "INBOX", uid, all_attachments=True)
    assert [(item.part_id, item.filename, item.content) for item in downloads] == [("2", "q3.pdf", b"%PDF-1.4")]
    with_inline = download_attachments(client, "INBOX", uid, all_attachments=True, include_inline=True)
    assert [item.filename for item in with_inline] == ["q3.pdf", "logo.png"]
    assert with_inline[1].as_dict(include_content=True)["content_base64"] == base64.b64encode(b"\x89PNG").decode()


def test_download_explicit_part_ids(imap_client):
    client, backend = imap_client
    uid = _with_attachment(backend)
    downloads = download_attachments(client, "INBOX", uid, part_ids="1.1, 2")
    assert [item.part_id for item in downloads] == ["1.1", "2"]
    assert downloads[0].content == b"Plain body"
    assert downloads[0].mime_type == "text/plain"
    with pytest.raises(UidLookupError):
        download_attachments(client, "INBOX", uid, part_ids=["9"])


def test_get_emails_list_skips_message_expunged_before_download(imap_client, monkeypatch):
    client, backend = imap_client
    first = _with_attachment(backend, subject="Quarterly")
    second = _with_attachment(backend, subject="Quarterly")
    real_download = client.download

    def download_after_expunge(uid, part_id, **kwargs):
        if uid == second:
            backend.expunge("INBOX", second)
        return real_download(uid, part_id, **kwargs)

    monkeypatch.setattr(client, "download", download_after_expunge)
    outcome = get_emails_list(client, "INBOX", None, include_parts=["textContent"], now=NOW)
    assert [record["uid"] for record in outcome.records] == [first]
    assert outcome.records[0]["text_content"] == "Plain body"
    assert outcome.dropped == 1
    assert outcome.total_found == 2


def test_list_mailboxes_with_status(imap_client):
    client, backend = imap_client
    backend.add_message(flags=(b"\\Seen",))
    backend.add_message("Archive/2024")
    listing = list_mailboxes(client, status_fields=["messages", "unseen", "MESSAGES"])
    assert listing.status_fields == ("MESSAGES", "UNSEEN")
    inbox, archive = listing.mailboxes
    assert inbox.status == {"MESSAGES": 1, "UNSEEN": 0}
    assert (archive.name, archive.level, archive.selectable) == ("2024", 1, True)
    payload = listing.as_dict()
    assert payload["summary"]["total_messages"] == 2
    assert payload["summary"]["total_unseen"] == 1
    assert payload["mailboxes"][1]["has_unseen_messages"] is True


def test_list_mailboxes_without_status_skips_status_calls(imap_client):
    client, backend = imap_client
    backend.fail_on.add("status")
    listing = list_mailboxes(client)
    assert [info.path for info in listing.mailboxes] == ["INBOX", "Archive/2024"]
    assert listing.as_dict()["mailboxes"][0]["status"] is None


def test_list_mailboxes_rejects_unknown_status_field(imap_client):
    client, _backend = imap_client
    with pytest.raises(InvalidField):
        list_mailboxes(client, status_fields=["HIGHESTMODSEQ"])


def test_mailbox_status_derives_activity(imap_client):
    client, backend = imap_client
    status = mailbox_status(client, {"mode": "list", "value": "Archive/2024"})
    assert status.as_dict()["is_empty"] is True
    assert status.activity_level == "low"
    backend.add_message(flags=(b"\\Seen",))
    backend.add_message()
    payload = mailbox_status(client).as_dict()
    assert payload["folder"] == "INBOX"
    assert (payload["messages"], payload["unseen"], payload["seen"]) == (2, 1, 1)
    assert payload["uid_next"] == 3


def test_download_email_returns_raw_message(imap_client):
    client, backend = imap_client
    uid = backend.add_message(subject="Keep")
    message = download_email(client, "INBOX", uid)
    assert message.content == backend.mailboxes["INBOX"][uid].raw
    assert message.as_dict()["filename"] == f"{uid}.eml"
    assert backend.fetch_calls[-1][1] == ["BODY.PEEK[]"]
    with pytest.raises(UidLookupError):
        download_email(client, "INBOX", 99)


def test_list_mailboxes_skips_status_for_noselect(imap_client, monkeypatch):
    client, backend = imap_client
    listing = [((b"\\Noselect",), b"/", "Archive"), ((b"\\HasNoChildren",), b"/", "Archive/2024")]
    monkeypatch.setattr(backend, "list_folders", lambda: listing)
    parent, child = list_mailboxes(client, status_fields=["MESSAGES"]).mailboxes
    assert parent.selectable is False
    assert parent.status is None
    assert child.status == {"MESSAGES": 0}
