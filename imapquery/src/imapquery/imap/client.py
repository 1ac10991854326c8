"""Read-only IMAP client wrapping ``imapclient`` for query workloads.

What:
  Wrap the third-party ``imapclient`` library with configuration defaults,
  mailbox-name normalisation, typed criteria searches, part downloads and a
  snapshot provider for result reconciliation.

Why:
  Direct use of ``imapclient`` exposes sharp edges: mailbox delimiter quirks,
  accidental sequence-number operations and library-specific exceptions that
  callers should not need to know about. Centralising them keeps the
  operation layer small and makes every wire failure a
  :class:`~imapquery.errors.TransportFailure`.

How:
  Loads defaults from the runtime configuration, lists folders once to learn
  the delimiter, and exposes UID-first helpers. Every call into
  ``imapclient`` runs inside :func:`_transport`, which converts
  ``IMAPClientError`` and socket errors into ``TransportFailure`` with the
  original chained.

Interfaces:
  :class:`ImapConfig`, :class:`ImapQueryClient`,
  :class:`ImapSnapshotProvider`.

Invariants & Safety:
  - Searches and fetches run in UID mode; :meth:`ImapQueryClient.fetch_range`
    is the only sequence-number call and restores UID mode afterwards.
  - Mailboxes are selected read-only by default and part bodies are fetched
    with ``BODY.PEEK`` so querying never sets ``\\Seen``.
"""
from __future__ import annotations

import contextlib
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from ..config.loader import RuntimeConfigError, get_runtime_config
from ..errors import ImapQueryError, PartTooLarge, TransportFailure, UidLookupError
from ..mime.message import decode_transfer
from ..query.criteria import CriteriaNode
from ..utils.logging import get_logger
from .reconcile import SnapshotProvider
from .search import build_search, needs_utf8


DEFAULT_STATUS_FIELDS = ("MESSAGES", "RECENT", "UIDNEXT", "UIDVALIDITY", "UNSEEN")


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


@contextlib.contextmanager
def _transport(action: str) -> Iterator[None]:
    """Translate ``imapclient`` and socket failures into ``TransportFailure``."""

    try:
        yield
    except ImapQueryError:
        raise
    except (IMAPClientError, OSError) as exc:
        raise TransportFailure(f"{action} failed: {exc}") from exc


@dataclass
class ImapConfig:
    """Connection parameters for an IMAP account.

    What:
      Host credentials plus optional overrides; unset optional fields are
      filled from :func:`~imapquery.config.loader.get_runtime_config`.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      port: IMAP port (defaults to the configured value, usually 993).
      ssl: Whether to use TLS.
      folder: Default mailbox.
      timeout: Socket timeout in seconds.
    """

    host: str
    username: str
    password: str
    port: Optional[int] = None
    ssl: Optional[bool] = None
    folder: Optional[str] = None
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        settings = get_runtime_config()
        if self.port is None:
            self.port = settings.imap.port
        if self.ssl is None:
            self.ssl = settings.imap.ssl
        if self.folder is None:
            self.folder = settings.imap.default_mailbox
        if self.timeout is None:
            self.timeout = settings.imap.timeout

    @classmethod
    def from_runtime(cls, *, password: Optional[str] = None) -> "ImapConfig":
        """Build a config entirely from ``config.yaml`` and the environment.

        The password is read from the environment variable named by
        ``imap.password_env`` unless given explicitly.

        Raises:
          RuntimeConfigError: When the username or password is missing.
        """

        settings = get_runtime_config().imap
        if not settings.username:
            raise RuntimeConfigError("imap.username is not configured")
        secret = password if password is not None else os.environ.get(settings.password_env)
        if not secret:
            raise RuntimeConfigError(f"environment variable {settings.password_env} is not set")
        return cls(host=settings.host, username=settings.username, password=secret)


class ImapQueryClient:
    """Context manager owning one ``IMAPClient`` connection.

    What:
      Connects and logs in on :meth:`__enter__`, logs out on
      :meth:`__exit__`, and offers read-only query helpers.

    Why:
      The server allows one in-flight command per connection; keeping the
      connection behind a single object makes that ownership explicit.
    """

    def __init__(self, config: ImapConfig):
        self._config = config
        self._client: Optional[IMAPClient] = None
        self._delimiter: str = "/"
        self._mailboxes: Set[str] = set()
        self._selected: Optional[str] = None
        self._selected_info: Dict[str, Any] = {}
        self._logger = get_logger("imapquery.imap")

    def __enter__(self) -> "ImapQueryClient":
        with _transport("connect"):
            self._client = IMAPClient(
                self._config.host,
                port=self._config.port,
                ssl=self._config.ssl,
                timeout=self._config.timeout,
            )
        with _transport("login"):
            self._client.login(self._config.username, self._config.password)
        self._logger.info("imap_connected", host=self._config.host, user=self._config.username)
        self._refresh_mailboxes()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client is None:
            return
        try:
            self._client.logout()
        except (IMAPClientError, OSError) as logout_error:
            self._logger.warning("imap_logout_failed", error=str(logout_error))
        finally:
            self._client = None
            self._selected = None

    @property
    def client(self) -> IMAPClient:
        """Expose the underlying ``IMAPClient`` connection.

        Raises:
          RuntimeError: If accessed before :meth:`__enter__`.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    @property
    def config(self) -> ImapConfig:
        return self._config

    @property
    def selected(self) -> Optional[str]:
        return self._selected

    @property
    def selected_info(self) -> Dict[str, Any]:
        """``SELECT`` response of the current mailbox with decoded keys."""

        return dict(self._selected_info)

    def list_mailboxes(self) -> List[Tuple[Tuple[str, ...], str, str]]:
        """Return ``(flags, delimiter, name)`` for every mailbox, decoded.

        Also refreshes the mailbox cache and the server delimiter.
        """

        with _transport("LIST"):
            listing = self.client.list_folders()
        entries: List[Tuple[Tuple[str, ...], str, str]] = []
        self._mailboxes.clear()
        for flags, delimiter, name in listing:
            decoded = _text(delimiter) if delimiter else ""
            if decoded:
                self._delimiter = decoded
            decoded_name = _text(name)
            self._mailboxes.add(decoded_name)
            entries.append((tuple(_text(flag) for flag in flags or ()), decoded or self._delimiter, decoded_name))
        return entries

    def _refresh_mailboxes(self) -> None:
        """Synchronise the mailbox cache and delimiter with the server listing."""

        self.list_mailboxes()

    def _normalize_path(self, *parts: str) -> str:
        """Join ``parts`` using the server delimiter while trimming empties."""

        delimiter = self._delimiter or "/"
        segments: List[str] = []
        for part in parts:
            candidate = part.replace("/", delimiter).replace(".", delimiter)
            for chunk in candidate.split(delimiter):
                chunk = chunk.strip()
                if chunk:
                    segments.append(chunk)
        return delimiter.join(segments)

    def resolve_mailbox(self, mailbox: Optional[str]) -> str:
        """Return the server-side name for ``mailbox``.

        Names the server listed are used verbatim; anything else is
        re-joined with the server delimiter. ``None`` means the default
        folder.
        """

        name = mailbox or self._config.folder or "INBOX"
        if name in self._mailboxes:
            return name
        return self._normalize_path(name)

    def _select(self, mailbox: str, *, readonly: bool = True) -> None:
        name = self.resolve_mailbox(mailbox)
        with _transport(f"SELECT {name}"):
            info = self.client.select_folder(name, readonly=readonly)
        self._selected = name
        self._selected_info = {
            (key.decode() if isinstance(key, bytes) else str(key)): value for key, value in (info or {}).items()
        }

    @contextlib.contextmanager
    def session(self, mailbox: Optional[str] = None, *, readonly: bool = True) -> Iterator[str]:
        """Select ``mailbox`` for the duration of the context manager.

        Yields the resolved mailbox name and reselects the previous mailbox
        on exit, if there was one.
        """

        previous = self._selected
        self._select(mailbox or self._config.folder or "INBOX", readonly=readonly)
        try:
            yield self._selected or str(mailbox)
        finally:
            if previous and previous != self._selected:
                self._select(previous)

    def uid_search(self, criteria: CriteriaNode) -> List[int]:
        """Run a UID SEARCH for a compiled criteria tree.

        Non-ASCII operands switch the command to ``CHARSET UTF-8``.

        Returns:
          Matching UIDs in server order (may be empty).
        """

        wire = build_search(criteria)
        charset = "UTF-8" if needs_utf8(criteria) else None
        with _transport("SEARCH"):
            result = self.client.search(wire, charset=charset)
        return [int(uid) for uid in result]

    def fetch(self, uids: Iterable[int], fields: Sequence[str]) -> Dict[int, Dict[bytes, Any]]:
        """Fetch ``fields`` for ``uids`` in UID mode."""

        wanted = list(uids)
        if not wanted:
            return {}
        with _transport("FETCH"):
            return dict(self.client.fetch(wanted, list(fields)))

    def fetch_range(self, start: int, end: int, fields: Sequence[str]) -> Dict[int, Dict[bytes, Any]]:
        """Fetch a sequence-number range, keyed by sequence number.

        Used to page the newest messages without a SEARCH. Include ``UID`` in
        ``fields`` to map results back to stable identifiers.
        """

        if end < start or end <= 0:
            return {}
        client = self.client
        client.use_uid = False
        try:
            with _transport("FETCH"):
                return dict(client.fetch(f"{max(1, start)}:{end}", list(fields)))
        finally:
            client.use_uid = True

    def status(self, mailbox: Optional[str] = None, fields: Sequence[str] = DEFAULT_STATUS_FIELDS) -> Dict[str, int]:
        """Return ``STATUS`` counters for ``mailbox`` with decoded keys."""

        name = self.resolve_mailbox(mailbox)
        with _transport(f"STATUS {name}"):
            response = self.client.folder_status(name, list(fields))
        return {
            (key.decode() if isinstance(key, bytes) else str(key)).upper(): int(value)
            for key, value in response.items()
        }

    def download(
        self,
        uid: int,
        part_id: str,
        *,
        encoding: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ) -> bytes:
        """Fetch one body section and undo its transfer encoding.

        Args:
          uid: Message UID in the selected mailbox.
          part_id: Section specifier from the part resolver (``"TEXT"``,
            ``"1.2"``...), or ``""`` for the whole message.
          encoding: Transfer encoding declared for the part, if known.
          max_bytes: Optional ceiling on the raw section size.

        Raises:
          UidLookupError: When the message no longer exists.
          PartTooLarge: When the section exceeds ``max_bytes``.
          TransportFailure: On wire errors.
        """

        section = f"BODY.PEEK[{part_id}]"
        response = self.fetch([uid], [section])
        data = response.get(uid)
        if data is None:
            raise UidLookupError(uid, f"message UID {uid} no longer exists")
        payload = _section_payload(data, part_id)
        if payload is None:
            raise UidLookupError(uid, f"server returned no data for part {part_id or 'BODY'} of UID {uid}")
        if max_bytes is not None and len(payload) > max_bytes:
            raise PartTooLarge(f"part {part_id} of UID {uid} is {len(payload)} bytes (limit {max_bytes})")
        try:
            return decode_transfer(payload, encoding)
        except ValueError as exc:
            raise TransportFailure(f"cannot decode part {part_id} of UID {uid}: {exc}") from exc

    def snapshot_provider(self) -> "ImapSnapshotProvider":
        """Return a provider that revalidates UIDs in the selected mailbox."""

        return ImapSnapshotProvider(self)


def _section_payload(data: Dict[bytes, Any], part_id: str) -> Optional[bytes]:
    expected = f"BODY[{part_id}]".encode()
    if expected in data:
        value = data[expected]
    else:
        value = next(
            (item for key, item in data.items() if isinstance(key, bytes) and key.startswith(b"BODY[")),
            None,
        )
    if value is None:
        return None
    return value if isinstance(value, bytes) else str(value).encode("utf-8")


class ImapSnapshotProvider(SnapshotProvider):
    """Revalidate UIDs against the mailbox currently selected on a client.

    :meth:`prepare` issues one ``UID FETCH <uids> (UID)``; the response only
    contains messages that still exist and carries each one's current
    sequence number. A failure there is fatal. Without ``prepare`` each
    :meth:`locate` runs its own fetch and a protocol error is reported as a
    per-UID :class:`~imapquery.errors.UidLookupError`.
    """

    def __init__(self, client: ImapQueryClient):
        self._client = client
        self._sequences: Optional[Dict[int, int]] = None

    def prepare(self, uids: Sequence[int]) -> None:
        response = self._client.fetch(uids, ["UID"])
        self._sequences = {int(uid): int(data.get(b"SEQ", 0)) for uid, data in response.items()}

    def locate(self, uid: int) -> Optional[int]:
        if self._sequences is not None:
            return self._sequences.get(uid)
        try:
            response = self._client.client.fetch([uid], ["UID"])
        except IMAPClientError as exc:
            raise UidLookupError(uid, str(exc)) from exc
        except OSError as exc:
            raise TransportFailure(f"FETCH failed: {exc}") from exc
        data = response.get(uid)
        if data is None:
            return None
        return int(data.get(b"SEQ", 0))
