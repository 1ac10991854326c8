"""
Module: tests/unit/test_parts.py

What:
    Validate the part resolver: IMAP section numbering, classification,
    primary body selection and the download/summary helpers.

Why:
    Part IDs go back to the server verbatim in ``BODY.PEEK[<id>]`` fetches; a
    numbering slip downloads the wrong attachment.
"""

import pytest

from imapquery.errors import MalformedBodyStructure
from imapquery.mime.parts import (
    Disposition,
    PartRole,
    downloadable_part_ids,
    resolve_parts,
    summarize_parts,
)
from imapquery.mime.structure import BodyStructureNode


def leaf(mime_type, disposition=None, filename=None, **extra):
    params = {"filename": filename} if filename else {}
    return BodyStructureNode(mime_type=mime_type, disposition=disposition, disposition_params=params, **extra)


def multi(subtype, *children):
    return BodyStructureNode(mime_type=f"multipart/{subtype}", children=tuple(children), is_multipart=True)


def test_single_part_is_text():
    parts = resolve_parts(leaf("text/plain", params={"charset": "utf-8"}))
    assert [info.part_id for info in parts] == ["TEXT"]
    assert parts[0].role is PartRole.TEXT
    assert parts[0].primary
    assert parts[0].charset == "utf-8"
    assert parts[0].depth == 0


def test_nested_numbering():
    tree = multi(
        "mixed",
        multi("alternative", leaf("text/plain"), leaf("text/html")),
        leaf("application/pdf", "attachment", "report.pdf"),
    )
    parts = resolve_parts(tree)
    assert [info.part_id for info in parts] == ["1.1", "1.2", "2"]
    assert [info.depth for info in parts] == [2, 2, 1]
    assert parts[2].role is PartRole.ATTACHMENT
    assert parts[2].disposition is Disposition.ATTACHMENT
    assert parts[2].filename == "report.pdf"


def test_containers_are_not_listed():
    tree = multi("mixed", multi("related", multi("alternative", leaf("text/plain"))))
    assert [info.part_id for info in resolve_parts(tree)] == ["1.1.1"]


def test_classification_first_match_wins():
    tree = multi(
        "mixed",
        leaf("text/plain", "attachment", "notes.txt"),
        leaf("image/png", "inline"),
        leaf("text/plain"),
        leaf("text/html"),
        leaf("application/octet-stream"),
    )
    roles = [info.role for info in resolve_parts(tree)]
    assert roles == [PartRole.ATTACHMENT, PartRole.INLINE, PartRole.TEXT, PartRole.HTML, PartRole.OTHER]


def test_primary_prefers_shallowest_then_first():
    tree = multi(
        "mixed",
        multi("alternative", leaf("text/plain"), leaf("text/html")),
        leaf("text/plain"),
        leaf("text/plain"),
    )
    parts = resolve_parts(tree)
    primary = [info.part_id for info in parts if info.primary]
    assert primary == ["1.2", "2"]


def test_missing_root_and_empty_multipart():
    assert resolve_parts(None) == []
    with pytest.raises(MalformedBodyStructure):
        resolve_parts(multi("mixed", multi("alternative")))


def test_filename_fallbacks():
    encoded = BodyStructureNode(
        mime_type="application/pdf",
        disposition="attachment",
        disposition_params={"filename*": "utf-8''%E2%82%AC%20rates.pdf"},
    )
    by_name = BodyStructureNode(mime_type="application/pdf", params={"name": "=?utf-8?q?caf=C3=A9.pdf?="})
    parts = resolve_parts(multi("mixed", encoded, by_name))
    assert parts[0].filename == "€ rates.pdf"
    assert parts[1].filename == "café.pdf"


def test_summary_and_downloads():
    tree = multi(
        "mixed",
        multi("related", leaf("text/html"), leaf("image/png", "inline", "logo.png")),
        leaf("application/pdf", "attachment", "q3.pdf"),
    )
    parts = resolve_parts(tree)
    summary = summarize_parts(parts)
    assert summary.text_part_id is None
    assert summary.html_part_id == "1.1"
    assert [info.part_id for info in summary.attachments] == ["2"]
    assert summary.inline == ()
    assert [info.part_id for info in summarize_parts(parts, include_inline=True).inline] == ["1.2"]
    assert downloadable_part_ids(parts) == ["2"]
    assert downloadable_part_ids(parts, include_inline=True) == ["1.2", "2"]


def test_inline_text_fills_empty_body_slot():
    parts = resolve_parts(multi("mixed", leaf("text/plain", "inline"), leaf("image/jpeg", "inline", "a.jpg")))
    summary = summarize_parts(parts, include_inline=True)
    assert summary.text_part_id == "1"
    assert [info.part_id for info in summary.inline] == ["2"]
