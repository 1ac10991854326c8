"""MIME helpers: typed body structures, part resolution and message parsing."""

from .message import ParsedMessage, decode_transfer, parse_message
from .parts import (
    Disposition,
    PartInfo,
    PartRole,
    PartSummary,
    downloadable_part_ids,
    resolve_parts,
    summarize_parts,
)
from .structure import BodyStructureNode, structure_from_dict, structure_from_imapclient, structure_to_dict

__all__ = [
    "BodyStructureNode",
    "Disposition",
    "ParsedMessage",
    "PartInfo",
    "PartRole",
    "PartSummary",
    "decode_transfer",
    "downloadable_part_ids",
    "parse_message",
    "resolve_parts",
    "structure_from_dict",
    "structure_from_imapclient",
    "structure_to_dict",
    "summarize_parts",
]
