"""Facade for the IMAP access layer.

What:
  Surface :class:`~imapquery.imap.client.ImapConfig`, the
  :class:`~imapquery.imap.client.ImapQueryClient` context manager, the result
  reconciler and the query operations.

Why:
  Call sites should not depend on which submodule a helper lives in; the
  operation layer in particular is what most embedders need.

Interfaces:
  ``ImapConfig``, ``ImapQueryClient``, ``reconcile``, ``ReconciliationResult``,
  ``SnapshotProvider``, ``MappingSnapshotProvider`` and the operations from
  :mod:`imapquery.imap.operations`.

Invariants & Safety:
  - Searches and fetches run in UID mode.
  - Every ``imapclient`` failure surfaces as
    :class:`~imapquery.errors.TransportFailure`.
"""

from .client import ImapConfig, ImapQueryClient
from .operations import (
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
from .reconcile import MappingSnapshotProvider, ReconciliationResult, SnapshotProvider, reconcile

__all__ = [
    "ImapConfig",
    "ImapQueryClient",
    "MappingSnapshotProvider",
    "ReconciliationResult",
    "SnapshotProvider",
    "download_attachments",
    "download_email",
    "get_email",
    "get_emails_list",
    "list_emails",
    "list_mailboxes",
    "list_parts",
    "mailbox_status",
    "reconcile",
    "search_emails",
]
