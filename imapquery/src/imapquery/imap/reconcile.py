"""Revalidate SEARCH results against the mailbox's current state.

What:
  Implement :func:`reconcile`, which orders a SEARCH response newest-first,
  keeps the first ``limit`` UIDs and drops every UID that no longer resolves
  in the mailbox.

Why:
  A SEARCH response is a point-in-time snapshot. Another session may expunge
  or move messages before the per-UID FETCHes run, so the UIDs cannot be
  trusted blindly. Dropping, rather than substituting neighbouring UIDs,
  keeps results honest.

How:
  Candidates are de-duplicated and sorted descending (higher UID first; UIDs
  only grow within a mailbox, so no secondary key is needed), truncated to the
  clamped limit, handed to the provider's :meth:`SnapshotProvider.prepare`
  hook, then checked one by one through :meth:`SnapshotProvider.locate`.

Interfaces:
  :class:`SnapshotProvider`, :class:`MappingSnapshotProvider`,
  :class:`ReconciliationResult`, :func:`reconcile`.

Invariants & Safety:
  - ``valid_uids`` is a subset of the input and keeps its descending order.
  - A :class:`~imapquery.errors.UidLookupError` for one UID counts as a drop;
    :class:`~imapquery.errors.TransportFailure` propagates to the caller.
  - An empty result is reported, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ..errors import UidLookupError
from ..query.compiler import DEFAULT_LIMIT, clamp_limit
from ..query.criteria import CriteriaNode
from ..utils.logging import get_logger


class SnapshotProvider:
    """Answer "where is this UID now?" for the selected mailbox.

    Subclasses implement :meth:`locate`; :meth:`prepare` lets a provider
    build a UID-to-sequence map with a single round trip before the per-UID
    checks run.
    """

    def prepare(self, uids: Sequence[int]) -> None:
        return None

    def locate(self, uid: int) -> Optional[int]:
        """Return the current sequence number of ``uid`` or ``None`` if gone."""

        raise NotImplementedError


class MappingSnapshotProvider(SnapshotProvider):
    """Provider backed by an already-known UID to sequence mapping."""

    def __init__(self, sequences: Mapping[int, int]):
        self._sequences = dict(sequences)

    @classmethod
    def from_uids(cls, uids: Iterable[int]) -> "MappingSnapshotProvider":
        """Number ``uids`` in ascending order, as a freshly selected mailbox would."""

        ordered = sorted(set(int(uid) for uid in uids))
        return cls({uid: index for index, uid in enumerate(ordered, start=1)})

    def locate(self, uid: int) -> Optional[int]:
        return self._sequences.get(uid)


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of :func:`reconcile`.

    Attributes:
      requested_uids: Candidates after ordering and truncation.
      valid_uids: Candidates still present, same relative order.
      dropped_count: ``len(requested_uids) - len(valid_uids)``.
      total_found: Distinct UIDs the server reported before truncation.
      limit: Effective (clamped) limit.
      sequences: Current sequence number of every valid UID.
      criteria: The criteria tree the UIDs were searched with.
    """

    requested_uids: Tuple[int, ...]
    valid_uids: Tuple[int, ...]
    dropped_count: int
    total_found: int
    limit: int
    sequences: Dict[int, int] = field(default_factory=dict)
    criteria: Optional[CriteriaNode] = None


def reconcile(
    criteria: Optional[CriteriaNode],
    raw_uids: Iterable[int],
    provider: SnapshotProvider,
    *,
    limit: object = DEFAULT_LIMIT,
) -> ReconciliationResult:
    """Order, truncate and revalidate a SEARCH response.

    What:
      Produces the UIDs that are safe to FETCH, newest first.

    Why:
      Mailboxes change between SEARCH and FETCH; callers should only FETCH
      UIDs that still exist and should be told how many vanished.

    How:
      See the module docstring. ``limit`` goes through
      :func:`~imapquery.query.compiler.clamp_limit` (``<= 0`` means 50,
      ``> 1000`` means 1000).

    Args:
      criteria: Criteria the UIDs were searched with, carried for reporting.
      raw_uids: UIDs as returned by the server, in any order.
      provider: Snapshot of the mailbox's current state.
      limit: Maximum number of UIDs to keep.

    Returns:
      A :class:`ReconciliationResult`.

    Raises:
      TransportFailure: When the provider cannot reach the mailbox at all.
    """

    logger = get_logger("imapquery.reconcile")
    effective = clamp_limit(limit)
    distinct = sorted({int(uid) for uid in raw_uids}, reverse=True)
    requested = tuple(distinct[:effective])
    provider.prepare(requested)
    valid = []
    sequences: Dict[int, int] = {}
    for uid in requested:
        try:
            sequence = provider.locate(uid)
        except UidLookupError as exc:
            logger.warning("uid_lookup_failed", uid=uid, error=str(exc))
            continue
        if sequence is None:
            continue
        valid.append(uid)
        sequences[uid] = sequence
    dropped = len(requested) - len(valid)
    if dropped:
        logger.info("uids_dropped", dropped=dropped, requested=len(requested))
    return ReconciliationResult(
        requested_uids=requested,
        valid_uids=tuple(valid),
        dropped_count=dropped,
        total_found=len(distinct),
        limit=effective,
        sequences=sequences,
        criteria=criteria,
    )
