"""Named quick-filter presets.

What:
  A closed :class:`QuickFilter` enum and the read-only table mapping each
  preset to a display label and a criteria fragment.

Why:
  Quick filters ("unread", "this week"...) are the most common search intent
  coming from AI agents. Keeping them in one table guarantees every entry
  point resolves a preset to the same fragment and label.

How:
  Each :class:`QuickFilterSpec` stores a builder taking the evaluation time,
  because calendar presets ("today", "last month") depend on when the query is
  compiled. The table itself is a :class:`types.MappingProxyType` and never
  changes at runtime.

Interfaces:
  :class:`QuickFilter`, :class:`QuickFilterSpec`, :data:`QUICK_FILTERS`,
  :func:`quick_fragment`, :func:`parse_quick_filter`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from .criteria import All, And, CriteriaNode, DateBound, DateEdge, Flag, FlagKind
from .dates import shift_months, start_of_day, start_of_month, start_of_week


class QuickFilter(str, Enum):
    ALL = "all"
    UNSEEN = "unseen"
    SEEN = "seen"
    FLAGGED = "flagged"
    UNFLAGGED = "unflagged"
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_HOUR = "lastHour"
    LAST_6_HOURS = "last6Hours"
    LAST_7_DAYS = "last7Days"
    LAST_30_DAYS = "last30Days"
    THIS_WEEK = "thisWeek"
    LAST_WEEK = "lastWeek"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"


@dataclass(frozen=True)
class QuickFilterSpec:
    label: str
    build: Callable[[datetime], CriteriaNode]


def _since(moment: datetime) -> DateBound:
    return DateBound(DateEdge.SINCE, moment)


def _between(start: datetime, end: datetime) -> And:
    return And((DateBound(DateEdge.SINCE, start), DateBound(DateEdge.BEFORE, end)))


QUICK_FILTERS: Mapping[QuickFilter, QuickFilterSpec] = MappingProxyType(
    {
        QuickFilter.ALL: QuickFilterSpec("All messages", lambda now: All()),
        QuickFilter.UNSEEN: QuickFilterSpec("Unread", lambda now: Flag(FlagKind.SEEN, False)),
        QuickFilter.SEEN: QuickFilterSpec("Read", lambda now: Flag(FlagKind.SEEN, True)),
        QuickFilter.FLAGGED: QuickFilterSpec("Flagged", lambda now: Flag(FlagKind.FLAGGED, True)),
        QuickFilter.UNFLAGGED: QuickFilterSpec(
            "Not flagged", lambda now: Flag(FlagKind.FLAGGED, False)
        ),
        QuickFilter.TODAY: QuickFilterSpec("Today", lambda now: _since(start_of_day(now))),
        QuickFilter.YESTERDAY: QuickFilterSpec(
            "Yesterday",
            lambda now: _between(start_of_day(now) - timedelta(days=1), start_of_day(now)),
        ),
        # SINCE is day-granular on the wire; sub-day presets still narrow to that day.
        QuickFilter.LAST_HOUR: QuickFilterSpec(
            "Last hour", lambda now: _since(now - timedelta(hours=1))
        ),
        QuickFilter.LAST_6_HOURS: QuickFilterSpec(
            "Last 6 hours", lambda now: _since(now - timedelta(hours=6))
        ),
        QuickFilter.LAST_7_DAYS: QuickFilterSpec(
            "Last 7 days", lambda now: _since(start_of_day(now) - timedelta(days=7))
        ),
        QuickFilter.LAST_30_DAYS: QuickFilterSpec(
            "Last 30 days", lambda now: _since(start_of_day(now) - timedelta(days=30))
        ),
        QuickFilter.THIS_WEEK: QuickFilterSpec("This week", lambda now: _since(start_of_week(now))),
        QuickFilter.LAST_WEEK: QuickFilterSpec(
            "Last week",
            lambda now: _between(start_of_week(now) - timedelta(days=7), start_of_week(now)),
        ),
        QuickFilter.THIS_MONTH: QuickFilterSpec(
            "This month", lambda now: _since(start_of_month(now))
        ),
        QuickFilter.LAST_MONTH: QuickFilterSpec(
            "Last month",
            lambda now: _between(shift_months(start_of_month(now), -1), start_of_month(now)),
        ),
    }
)

_ALIASES = {
    "unread": QuickFilter.UNSEEN,
    "read": QuickFilter.SEEN,
    "week": QuickFilter.LAST_7_DAYS,
    "month": QuickFilter.LAST_30_DAYS,
}


def parse_quick_filter(name: str) -> QuickFilter:
    """Resolve a preset name, accepting any casing and a few legacy aliases.

    Raises:
      ValueError: If ``name`` is not a known preset.
    """

    key = (name or "").strip()
    lowered = key.lower()
    if lowered in _ALIASES:
        return _ALIASES[lowered]
    for preset in QuickFilter:
        if preset.value.lower() == lowered:
            return preset
    raise ValueError(f"unknown quick filter {name!r}")


def quick_fragment(preset: QuickFilter, *, now: Optional[datetime] = None) -> CriteriaNode:
    """Build the criteria fragment for ``preset`` evaluated at ``now``."""

    return QUICK_FILTERS[preset].build(now or datetime.now())
