"""Typed body-structure nodes and adapters from server representations.

What:
  Define :class:`BodyStructureNode`, the strongly typed tree the part resolver
  walks, and convert ``imapclient``'s positional ``BODYSTRUCTURE`` tuples (and
  the dictionary shape used by JSON fixtures) into it.

Why:
  ``imapclient`` returns ``BODYSTRUCTURE`` as nested tuples of ``bytes`` whose
  layout depends on the media type (``text/*`` and ``message/rfc822`` carry
  extra positional fields before the disposition). Reading those offsets in a
  single place keeps the resolver free of index arithmetic.

How:
  :func:`structure_from_imapclient` inspects ``is_multipart`` (or the shape of
  the first element for plain tuples), decodes ``bytes`` values and converts
  parameter lists into dictionaries. ``message/rfc822`` parts are kept as
  leaves: the enclosed message is addressed as a whole.

Interfaces:
  :class:`BodyStructureNode`, :func:`structure_from_imapclient`,
  :func:`structure_from_dict`, :func:`structure_to_dict`.

Invariants & Safety:
  - Media types, disposition values and parameter names are lower-cased.
  - ``None`` in yields ``None`` out; no structure is ever guessed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..errors import MalformedBodyStructure


@dataclass(frozen=True)
class BodyStructureNode:
    """One node of a message's MIME tree.

    Leaves carry transfer metadata; multipart nodes carry ``children``.
    """

    mime_type: str
    params: Dict[str, str] = field(default_factory=dict)
    disposition: Optional[str] = None
    disposition_params: Dict[str, str] = field(default_factory=dict)
    encoding: Optional[str] = None
    size: Optional[int] = None
    content_id: Optional[str] = None
    children: Tuple["BodyStructureNode", ...] = ()
    is_multipart: bool = False


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _pairs(raw: Any) -> Dict[str, str]:
    """Turn ``(b'charset', b'utf-8', b'name', b'x')`` into a dictionary."""

    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return {str(_text(k)).lower(): _text(v) or "" for k, v in raw.items()}
    if not isinstance(raw, (list, tuple)):
        return {}
    items = list(raw)
    result: Dict[str, str] = {}
    for index in range(0, len(items) - 1, 2):
        key = _text(items[index])
        if key:
            result[key.lower()] = _text(items[index + 1]) or ""
    return result


def _disposition(raw: Any) -> Tuple[Optional[str], Dict[str, str]]:
    if not raw:
        return None, {}
    if isinstance(raw, (list, tuple)):
        kind = _text(raw[0]) if raw else None
        params = _pairs(raw[1]) if len(raw) > 1 else {}
        return (kind.lower() if kind else None), params
    kind = _text(raw)
    return (kind.lower() if kind else None), {}


def _at(items: Sequence[Any], index: int) -> Any:
    return items[index] if len(items) > index else None


def _is_multipart(bodystructure: Any) -> bool:
    flag = getattr(bodystructure, "is_multipart", None)
    if isinstance(flag, bool):
        return flag
    return bool(bodystructure) and isinstance(bodystructure[0], list)


def structure_from_imapclient(bodystructure: Any) -> Optional[BodyStructureNode]:
    """Convert an ``imapclient`` ``BODYSTRUCTURE`` value into a typed tree.

    What:
      Accepts :class:`imapclient.response_types.BodyData` (or an equivalent
      tuple) and returns the matching :class:`BodyStructureNode`.

    How:
      Multipart values are ``([child, ...], subtype, params, disposition,
      ...)``. Single parts are ``(type, subtype, params, id, description,
      encoding, size, ...)`` with the disposition at index 9 for ``text/*``,
      11 for ``message/rfc822`` and 8 otherwise.

    Args:
      bodystructure: Value of ``b'BODYSTRUCTURE'`` from a FETCH response.

    Returns:
      The root node, or ``None`` when the server returned no structure.

    Raises:
      MalformedBodyStructure: When the value is not a tuple-like structure.
    """

    if bodystructure is None:
        return None
    if not isinstance(bodystructure, (list, tuple)) or not bodystructure:
        raise MalformedBodyStructure(f"unexpected BODYSTRUCTURE value: {bodystructure!r}")
    if _is_multipart(bodystructure):
        children = tuple(
            node
            for node in (structure_from_imapclient(child) for child in bodystructure[0])
            if node is not None
        )
        subtype = (_text(_at(bodystructure, 1)) or "mixed").lower()
        disposition, disposition_params = _disposition(_at(bodystructure, 3))
        return BodyStructureNode(
            mime_type=f"multipart/{subtype}",
            params=_pairs(_at(bodystructure, 2)),
            disposition=disposition,
            disposition_params=disposition_params,
            children=children,
            is_multipart=True,
        )
    if len(bodystructure) < 7:
        raise MalformedBodyStructure(f"truncated body part: {bodystructure!r}")
    maintype = (_text(bodystructure[0]) or "application").lower()
    subtype = (_text(bodystructure[1]) or "octet-stream").lower()
    mime_type = f"{maintype}/{subtype}"
    if maintype == "text":
        disposition_index = 9
    elif mime_type == "message/rfc822":
        disposition_index = 11
    else:
        disposition_index = 8
    disposition, disposition_params = _disposition(_at(bodystructure, disposition_index))
    encoding = _text(bodystructure[5])
    size = bodystructure[6]
    return BodyStructureNode(
        mime_type=mime_type,
        params=_pairs(bodystructure[2]),
        disposition=disposition,
        disposition_params=disposition_params,
        encoding=encoding.lower() if encoding else None,
        size=int(size) if size is not None else None,
        content_id=_text(bodystructure[3]),
    )


def structure_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[BodyStructureNode]:
    """Build a tree from the ``{"type", "childNodes", ...}`` dictionary shape.

    Keys follow the camel-cased layout common in JSON exports of body
    structures: ``type``, ``parameters``, ``disposition``,
    ``dispositionParameters``, ``encoding``, ``size``, ``id`` and
    ``childNodes``.
    """

    if data is None:
        return None
    mime_type = str(data.get("type") or "").lower()
    if "/" not in mime_type:
        raise MalformedBodyStructure(f"body part without a media type: {dict(data)!r}")
    raw_children = data.get("childNodes")
    is_multipart = mime_type.startswith("multipart/")
    children: Tuple[BodyStructureNode, ...] = ()
    if is_multipart:
        children = tuple(
            node for node in (structure_from_dict(child) for child in raw_children or []) if node is not None
        )
    disposition = data.get("disposition")
    encoding = data.get("encoding")
    size = data.get("size")
    return BodyStructureNode(
        mime_type=mime_type,
        params=_pairs(data.get("parameters")),
        disposition=str(disposition).lower() if disposition else None,
        disposition_params=_pairs(data.get("dispositionParameters")),
        encoding=str(encoding).lower() if encoding else None,
        size=int(size) if size is not None else None,
        content_id=data.get("id"),
        children=children,
        is_multipart=is_multipart,
    )


def structure_to_dict(node: Optional[BodyStructureNode]) -> Optional[Dict[str, Any]]:
    """Inverse of :func:`structure_from_dict`, for JSON output."""

    if node is None:
        return None
    data: Dict[str, Any] = {"type": node.mime_type}
    if node.params:
        data["parameters"] = dict(node.params)
    if node.disposition:
        data["disposition"] = node.disposition
    if node.disposition_params:
        data["dispositionParameters"] = dict(node.disposition_params)
    if node.encoding:
        data["encoding"] = node.encoding
    if node.size is not None:
        data["size"] = node.size
    if node.content_id:
        data["id"] = node.content_id
    if node.is_multipart:
        data["childNodes"] = [structure_to_dict(child) for child in node.children]
    return data
