"""imapquery command-line interface.

What:
  Provide a Typer application exposing the query layer to shells and agent
  tool runners: ``compile`` (offline), ``search``, ``quick``, ``list``,
  ``get``, ``parts``, ``download``, ``eml``, ``mailboxes`` and ``status``.
  ``compile`` and ``search`` also accept agent tool-call parameters through
  ``--params``.

Why:
  Operators and automation need to inspect what a search intent compiles to
  and run it against a mailbox without writing Python. Printing JSON keeps
  the output machine-readable for both.

How:
  Each command loads the runtime configuration (``--config`` overrides the
  discovery order), opens an :class:`~imapquery.imap.client.ImapQueryClient`
  built from it, calls one function of :mod:`imapquery.imap.operations` and
  prints the result's ``as_dict()`` as JSON on stdout. Structured logs go to
  stderr so stdout stays parseable.

Interfaces:
  ``app`` (Typer application), ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Failures print ``{"error": ..., "message": ...}`` on stdout and never a
    traceback; the search display text is included when known.
  - Every command opens mailboxes read-only.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import typer

from .config.loader import ConfigLoadError, get_runtime_config, load_runtime_config
from .errors import ImapQueryError, QueryError
from .imap.client import ImapConfig, ImapQueryClient
from .imap.operations import (
    download_attachments,
    download_email,
    get_email,
    list_emails,
    list_mailboxes,
    list_parts,
    mailbox_status,
    search_emails,
)
from .imap.search import build_search
from .query.compiler import compile_query
from .query.criteria import to_dict
from .query.dates import parse_date
from .utils.params import filter_from_params, limit_from_params, mailbox_name


app = typer.Typer(help="Compile search intents and query IMAP mailboxes")

LOGGER = logging.getLogger("imapquery.cli")


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _fail(command: str, exc: Exception) -> typer.Exit:
    """Report ``exc`` as JSON and build the exit signal for the caller to raise."""

    LOGGER.error("%s_failed: %s", command, exc)
    payload: Dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    display = getattr(exc, "display_text", None)
    if display:
        payload["query"] = display
    _emit(payload)
    return typer.Exit(code=1)


def _connect() -> ImapQueryClient:
    return ImapQueryClient(ImapConfig.from_runtime())


def _now(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return parse_date(value)


def _tool_params(raw: str) -> Dict[str, Any]:
    """Decode a ``--params`` payload as sent by agent tool calls."""

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise QueryError(f"--params is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise QueryError("--params must be a JSON object")
    return payload


def _target_path(out: Path, filename: Optional[str], fallback: str, part_id: str, used: Set[Path]) -> Path:
    """Pick a file path under ``out`` that this run has not written yet."""

    # Only the final path component of a sender-supplied name is trusted.
    name = Path(filename).name if filename else ""
    target = out / (name or fallback)
    if target in used:
        stem = Path(target.name)
        target = out / f"{stem.stem}-{part_id}{stem.suffix}"
    used.add(target)
    return target


@app.callback()
def configure(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to config.yaml (defaults to IMAPQUERY_CONFIG_PATH or the standard locations)",
    ),
) -> None:
    """Load the runtime configuration before any command runs."""

    try:
        load_runtime_config(config_path, reload=config_path is not None)
    except ConfigLoadError as exc:
        raise _fail("runtime_load", exc) from exc


@app.command("compile")
def compile_command(
    query: str = typer.Argument("", help="Free-text query, e.g. 'from:bob and unread'"),
    filter_json: Optional[str] = typer.Option(
        None, "--filter", help="Structured filter as a JSON object (replaces QUERY)"
    ),
    params_json: Optional[str] = typer.Option(
        None, "--params", help="Tool-call parameters as a JSON object (replaces QUERY)"
    ),
    now: Optional[str] = typer.Option(None, help="Evaluation time for relative dates (ISO 8601)"),
) -> None:
    """Compile a query without connecting and print the resulting criteria."""

    try:
        search_input: Any = query
        if params_json:
            search_input = filter_from_params(_tool_params(params_json))
        elif filter_json:
            search_input = json.loads(filter_json)
        compiled = compile_query(search_input, now=_now(now))
    except json.JSONDecodeError as exc:
        raise _fail("compile", QueryError(f"--filter is not valid JSON: {exc}")) from exc
    except ImapQueryError as exc:
        raise _fail("compile", exc) from exc
    _emit(
        {
            "display_text": compiled.display_text,
            "criteria": to_dict(compiled.criteria),
            "imap": build_search(compiled.criteria),
        }
    )


@app.command("search")
def search_command(
    query: str = typer.Argument("", help="Free-text query"),
    mailbox: Optional[str] = typer.Option(None, help="Mailbox to search (defaults to imap.default_mailbox)"),
    limit: Optional[int] = typer.Option(None, help="Maximum messages to return (1-1000)"),
    params_json: Optional[str] = typer.Option(
        None,
        "--params",
        help="Tool-call parameters as a JSON object; supplies the filter, mailbox and limit",
    ),
) -> None:
    """Search a mailbox and print envelope summaries, newest first."""

    try:
        search_input: Any = query
        if params_json:
            params = _tool_params(params_json)
            search_input = filter_from_params(params)
            if mailbox is None:
                mailbox = mailbox_name(params.get("mailbox"), get_runtime_config().imap.default_mailbox)
            if limit is None:
                limit = limit_from_params(params, default=get_runtime_config().search.default_limit)
        with _connect() as client:
            outcome = search_emails(client, mailbox, search_input, limit=limit)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("search", exc) from exc
    _emit(outcome.as_dict())


@app.command("quick")
def quick_command(
    preset: str = typer.Argument(..., help="Preset name, e.g. unseen, today, lastWeek"),
    text: Optional[str] = typer.Option(None, help="Narrow the preset with a free-text fragment"),
    mailbox: Optional[str] = typer.Option(None, help="Mailbox to search"),
    limit: Optional[int] = typer.Option(None, help="Maximum messages to return (1-1000)"),
) -> None:
    """Run a quick-filter preset."""

    try:
        search_input = {"kind": "quick", "preset": preset, "text": text}
        with _connect() as client:
            outcome = search_emails(client, mailbox, search_input, limit=limit)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("quick", exc) from exc
    _emit(outcome.as_dict())


@app.command("list")
def list_command(
    mailbox: Optional[str] = typer.Option(None, help="Mailbox to list"),
    limit: Optional[int] = typer.Option(None, help="Number of newest messages (1-1000)"),
) -> None:
    """List the newest messages of a mailbox without searching."""

    try:
        with _connect() as client:
            outcome = list_emails(client, mailbox, limit=limit)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("list", exc) from exc
    _emit(outcome.as_dict())


@app.command("get")
def get_command(
    uid: int = typer.Argument(..., help="Message UID"),
    mailbox: Optional[str] = typer.Option(None, help="Mailbox holding the message"),
) -> None:
    """Fetch and print one parsed message."""

    try:
        with _connect() as client:
            detail = get_email(client, mailbox, uid)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("get", exc) from exc
    _emit(detail.as_dict())


@app.command("parts")
def parts_command(
    uid: int = typer.Argument(..., help="Message UID"),
    mailbox: Optional[str] = typer.Option(None, help="Mailbox holding the message"),
    include_inline: Optional[bool] = typer.Option(
        None, "--include-inline/--no-include-inline", help="List inline parts (defaults to parts.include_inline)"
    ),
) -> None:
    """Print the classified part list of one message."""

    try:
        with _connect() as client:
            listing = list_parts(client, mailbox, uid, include_inline=include_inline)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("parts", exc) from exc
    _emit(listing.as_dict())


@app.command("download")
def download_command(
    uid: int = typer.Argument(..., help="Message UID"),
    part: Optional[List[str]] = typer.Option(None, "--part", help="Part ID to download (repeatable)"),
    all_attachments: bool = typer.Option(False, "--all", help="Download every attachment"),
    include_inline: Optional[bool] = typer.Option(
        None, "--include-inline/--no-include-inline", help="With --all, also download inline parts"
    ),
    mailbox: Optional[str] = typer.Option(None, help="Mailbox holding the message"),
    out: Path = typer.Option(Path("."), "--out", help="Directory to write the files into"),
) -> None:
    """Download message parts into a directory and print what was written."""

    if not part and not all_attachments:
        raise _fail("download", QueryError("pass --part at least once or --all"))
    try:
        with _connect() as client:
            downloads = download_attachments(
                client,
                mailbox,
                uid,
                part_ids=part,
                all_attachments=all_attachments,
                include_inline=include_inline,
            )
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("download", exc) from exc
    written = []
    used: Set[Path] = set()
    try:
        out.mkdir(parents=True, exist_ok=True)
        for item in downloads:
            target = _target_path(out, item.filename, f"{uid}-part-{item.part_id}.bin", item.part_id, used)
            target.write_bytes(item.content)
            record = item.as_dict()
            record["path"] = str(target)
            written.append(record)
    except OSError as exc:
        raise _fail("download", exc) from exc
    _emit({"uid": uid, "downloaded": written})


@app.command("eml")
def eml_command(
    uid: int = typer.Argument(..., help="Message UID"),
    mailbox: Optional[str] = typer.Option(None, help="Mailbox holding the message"),
    out: Path = typer.Option(Path("."), "--out", help="Directory to write <UID>.eml into"),
) -> None:
    """Download a whole message as an .eml file."""

    try:
        with _connect() as client:
            message = download_email(client, mailbox, uid)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("eml", exc) from exc
    target = out / message.filename
    try:
        out.mkdir(parents=True, exist_ok=True)
        target.write_bytes(message.content)
    except OSError as exc:
        raise _fail("eml", exc) from exc
    record = message.as_dict()
    record["path"] = str(target)
    _emit(record)


@app.command("mailboxes")
def mailboxes_command(
    status: Optional[List[str]] = typer.Option(
        None, "--status", help="STATUS counter to include per mailbox (repeatable), e.g. MESSAGES, UNSEEN"
    ),
) -> None:
    """List every mailbox on the server."""

    try:
        with _connect() as client:
            listing = list_mailboxes(client, status_fields=status)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("mailboxes", exc) from exc
    _emit(listing.as_dict())


@app.command("status")
def status_command(
    mailbox: Optional[str] = typer.Option(None, help="Mailbox to inspect (defaults to imap.default_mailbox)"),
) -> None:
    """Print message counters for one mailbox."""

    try:
        with _connect() as client:
            counters = mailbox_status(client, mailbox)
    except (ImapQueryError, ConfigLoadError) as exc:
        raise _fail("status", exc) from exc
    _emit(counters.as_dict())


def main() -> None:
    """Invoke the Typer application."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
