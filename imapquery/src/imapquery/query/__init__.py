"""Search-criteria compiler.

What:
  Expose the criteria tree, the canonical search inputs, the quick-filter
  table and :func:`compile_query`.

Interfaces:
  ``compile_query``, ``CompiledQuery``, ``clamp_limit``, ``coerce_search_input``,
  ``FreeTextQuery``, ``StructuredFilter``, ``QuickFilterQuery``,
  ``QuickFilter``, ``parse_date`` and the node classes from
  :mod:`imapquery.query.criteria`.
"""

from .compiler import CompiledQuery, clamp_limit, compile_query
from .criteria import (
    All,
    And,
    CriteriaNode,
    DateBound,
    DateEdge,
    FieldKind,
    Flag,
    FlagKind,
    Leaf,
    Not,
    Or,
    SizeBound,
    SizeEdge,
    render,
    to_dict,
)
from .dates import parse_date
from .inputs import FreeTextQuery, QuickFilterQuery, SearchInput, StructuredFilter, coerce_search_input
from .quick import QUICK_FILTERS, QuickFilter

__all__ = [
    "All",
    "And",
    "CompiledQuery",
    "CriteriaNode",
    "DateBound",
    "DateEdge",
    "FieldKind",
    "Flag",
    "FlagKind",
    "FreeTextQuery",
    "Leaf",
    "Not",
    "Or",
    "QUICK_FILTERS",
    "QuickFilter",
    "QuickFilterQuery",
    "SearchInput",
    "SizeBound",
    "SizeEdge",
    "StructuredFilter",
    "clamp_limit",
    "coerce_search_input",
    "compile_query",
    "parse_date",
    "render",
    "to_dict",
]
