"""Resolve a body-structure tree into addressable, classified parts.

What:
  Walk a :class:`~imapquery.mime.structure.BodyStructureNode` depth-first,
  assign every leaf its IMAP section specifier (``"TEXT"``, ``"1"``,
  ``"1.2"``...), classify it and collect the metadata needed to fetch it
  later.

Why:
  Part IDs are sent back to the server in ``BODY[<part>]`` fetches, so the
  numbering must match RFC 3501 addressing exactly. Classification decides
  which part is shown as the message text, which as HTML and which are
  downloadable attachments.

How:
  :func:`resolve_parts` recurses over multipart children carrying the parent
  path and depth; the part ID is a pure function of that path. Primary text
  and HTML slots go to the shallowest candidate, first in traversal order on
  ties. :func:`summarize_parts` and :func:`downloadable_part_ids` select from
  the resolved list.

Interfaces:
  :class:`Disposition`, :class:`PartRole`, :class:`PartInfo`,
  :class:`PartSummary`, :func:`resolve_parts`, :func:`summarize_parts`,
  :func:`downloadable_part_ids`.

Invariants & Safety:
  - A single-part message yields exactly one part, ``"TEXT"``.
  - Multipart containers are traversed but never listed.
  - A multipart node without children raises
    :class:`~imapquery.errors.MalformedBodyStructure`; a missing tree yields
    ``[]``.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from email.header import decode_header, make_header
from email.utils import decode_rfc2231
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

from ..errors import MalformedBodyStructure
from .structure import BodyStructureNode


SINGLE_PART_ID = "TEXT"


class Disposition(str, Enum):
    INLINE = "inline"
    ATTACHMENT = "attachment"


class PartRole(str, Enum):
    """Classification of a leaf part, first matching rule wins."""

    ATTACHMENT = "attachment"
    INLINE = "inline"
    TEXT = "text"
    HTML = "html"
    OTHER = "other"


@dataclass(frozen=True)
class PartInfo:
    """Metadata for one addressable leaf part."""

    part_id: str
    mime_type: str
    disposition: Optional[Disposition]
    filename: Optional[str]
    encoding: Optional[str]
    size: Optional[int]
    role: PartRole
    depth: int = 0
    charset: Optional[str] = None
    content_id: Optional[str] = None
    primary: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "part_id": self.part_id,
            "mime_type": self.mime_type,
            "disposition": self.disposition.value if self.disposition else None,
            "filename": self.filename,
            "encoding": self.encoding,
            "size": self.size,
            "role": self.role.value,
            "primary": self.primary,
            "charset": self.charset,
            "content_id": self.content_id,
        }


@dataclass(frozen=True)
class PartSummary:
    """Parts a reader cares about: the text bodies and the downloadables."""

    text_part_id: Optional[str] = None
    html_part_id: Optional[str] = None
    attachments: Tuple[PartInfo, ...] = ()
    inline: Tuple[PartInfo, ...] = ()


def _decode_words(value: str) -> str:
    try:
        return str(make_header(decode_header(value)))
    except (ValueError, LookupError):
        return value


def _extended_value(value: str) -> str:
    """Decode an RFC 2231 ``charset'lang'%XX`` parameter value."""

    charset, _language, text = decode_rfc2231(value)
    try:
        return unquote(text, encoding=charset or "us-ascii", errors="replace")
    except LookupError:
        return unquote(text, errors="replace")


def _filename(node: BodyStructureNode) -> Optional[str]:
    """Pick the filename from disposition parameters, then content-type ``name``."""

    for params, key in ((node.disposition_params, "filename"), (node.params, "name")):
        extended = params.get(f"{key}*")
        if extended:
            return _extended_value(extended)
        plain = params.get(key)
        if plain:
            return _decode_words(plain)
    return None


def _classify(node: BodyStructureNode) -> Tuple[Optional[Disposition], PartRole]:
    if node.disposition == Disposition.ATTACHMENT.value:
        return Disposition.ATTACHMENT, PartRole.ATTACHMENT
    if node.disposition == Disposition.INLINE.value:
        return Disposition.INLINE, PartRole.INLINE
    if node.mime_type == "text/plain":
        return None, PartRole.TEXT
    if node.mime_type == "text/html":
        return None, PartRole.HTML
    return None, PartRole.OTHER


def _leaf(node: BodyStructureNode, part_id: str, depth: int) -> PartInfo:
    disposition, role = _classify(node)
    return PartInfo(
        part_id=part_id,
        mime_type=node.mime_type,
        disposition=disposition,
        filename=_filename(node),
        encoding=node.encoding,
        size=node.size,
        role=role,
        depth=depth,
        charset=node.params.get("charset"),
        content_id=node.content_id,
    )


def _walk(node: BodyStructureNode, path: Tuple[int, ...], out: List[PartInfo]) -> None:
    if not node.is_multipart:
        out.append(_leaf(node, ".".join(str(index) for index in path), len(path)))
        return
    if not node.children:
        where = ".".join(str(index) for index in path) or "root"
        raise MalformedBodyStructure(f"multipart node {where} declares no children")
    for index, child in enumerate(node.children, start=1):
        _walk(child, path + (index,), out)


def resolve_parts(root: Optional[BodyStructureNode]) -> List[PartInfo]:
    """Return every addressable leaf of ``root`` in traversal order.

    What:
      Produces :class:`PartInfo` records whose ``part_id`` can be passed to
      ``BODY.PEEK[<part_id>]`` unchanged.

    How:
      A non-multipart root is the single part ``"TEXT"``. Otherwise children
      are numbered from 1 at each level and joined with dots. After the walk
      the shallowest text/plain and text/html candidates are marked
      ``primary``.

    Args:
      root: Typed body structure, or ``None`` when the server sent none.

    Returns:
      List of parts; empty when ``root`` is ``None``.

    Raises:
      MalformedBodyStructure: When a multipart node has no children.
    """

    if root is None:
        return []
    if not root.is_multipart:
        single = _leaf(root, SINGLE_PART_ID, 0)
        return [replace(single, primary=single.role in (PartRole.TEXT, PartRole.HTML))]
    parts: List[PartInfo] = []
    _walk(root, (), parts)
    for role in (PartRole.TEXT, PartRole.HTML):
        candidates = [index for index, info in enumerate(parts) if info.role is role]
        if candidates:
            chosen = min(candidates, key=lambda index: (parts[index].depth, index))
            parts[chosen] = replace(parts[chosen], primary=True)
    return parts


def _primary(parts: List[PartInfo], role: PartRole, mime_type: str) -> Optional[str]:
    for info in parts:
        if info.role is role and info.primary:
            return info.part_id
    for info in parts:
        if info.role is PartRole.INLINE and info.mime_type == mime_type and not info.filename:
            return info.part_id
    return None


def summarize_parts(parts: List[PartInfo], *, include_inline: bool = False) -> PartSummary:
    """Pick the text/HTML bodies and the downloadable parts.

    When no undisposed ``text/plain`` exists, an inline ``text/plain`` without
    a filename is used as the text body (same for HTML); such a part is not
    reported again under ``inline``.
    """

    text_part_id = _primary(parts, PartRole.TEXT, "text/plain")
    html_part_id = _primary(parts, PartRole.HTML, "text/html")
    bodies = {text_part_id, html_part_id}
    attachments = tuple(info for info in parts if info.role is PartRole.ATTACHMENT)
    inline: Tuple[PartInfo, ...] = ()
    if include_inline:
        inline = tuple(info for info in parts if info.role is PartRole.INLINE and info.part_id not in bodies)
    return PartSummary(
        text_part_id=text_part_id,
        html_part_id=html_part_id,
        attachments=attachments,
        inline=inline,
    )


def downloadable_part_ids(parts: List[PartInfo], *, include_inline: bool = False) -> List[str]:
    """Return attachment part IDs, plus inline ones when ``include_inline``."""

    wanted = {PartRole.ATTACHMENT, PartRole.INLINE} if include_inline else {PartRole.ATTACHMENT}
    return [info.part_id for info in parts if info.role in wanted]
