"""Date parsing shared by the free-text, structured and quick-filter paths.

What:
  Turn operator or AI supplied date strings (ISO dates, ``today``,
  ``yesterday``, ``3d``, ``12 hours``...) into concrete :class:`datetime`
  values, plus calendar helpers used by the quick-filter table.

Why:
  IMAP ``SINCE``/``BEFORE`` only understand absolute dates, while search
  intents are usually relative. A single parser keeps the three input shapes
  consistent and makes "unparseable" an explicit :class:`InvalidDate` instead
  of a silent fallback to a text search.

How:
  Relative keywords and ``<N><unit>`` durations are resolved against an
  injectable ``now``; everything else goes through
  :meth:`datetime.fromisoformat` after normalising a trailing ``Z``.

Interfaces:
  :func:`parse_date`, :func:`start_of_day`, :func:`start_of_week`,
  :func:`start_of_month`, :func:`shift_months`.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from ..errors import InvalidDate

_DURATION = re.compile(
    r"^(?P<amount>\d+)\s*(?P<unit>h|hours?|m|mins?|minutes?|d|days?)$",
    re.IGNORECASE,
)


def start_of_day(moment: Union[date, datetime]) -> datetime:
    """Return midnight of the day containing ``moment``."""

    if isinstance(moment, datetime):
        return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)
    return datetime.combine(moment, time.min)


def start_of_week(moment: datetime) -> datetime:
    """Return midnight of the Monday starting ``moment``'s week."""

    return start_of_day(moment) - timedelta(days=moment.weekday())


def start_of_month(moment: datetime) -> datetime:
    return start_of_day(moment).replace(day=1)


def shift_months(moment: datetime, months: int) -> datetime:
    """Move the first-of-month ``moment`` by ``months`` calendar months."""

    index = moment.year * 12 + (moment.month - 1) + months
    return moment.replace(year=index // 12, month=index % 12 + 1, day=1)


def parse_date(text: str, *, now: Optional[datetime] = None) -> datetime:
    """Parse ``text`` into an absolute moment.

    What:
      Accepts ISO dates and date-times, ``today``/``yesterday`` (midnight of
      that day) and durations ``<N>h``/``hours``, ``<N>m``/``min``/``minutes``
      and ``<N>d``/``days`` counted back from ``now``.

    Why:
      Free-text ``since:``/``before:`` tokens and the structured custom range
      share these semantics; the quick filters build on the same helpers.

    Args:
      text: Raw date expression.
      now: Evaluation time, defaults to the local wall clock.

    Returns:
      A :class:`datetime`; calendar keywords resolve to midnight.

    Raises:
      InvalidDate: If ``text`` matches none of the accepted forms.
    """

    if now is None:
        now = datetime.now()
    cleaned = (text or "").strip()
    lowered = cleaned.lower()
    if not lowered:
        raise InvalidDate("empty date expression")
    if lowered == "today":
        return start_of_day(now)
    if lowered == "yesterday":
        return start_of_day(now) - timedelta(days=1)
    match = _DURATION.match(lowered)
    if match:
        amount = int(match.group("amount"))
        unit = match.group("unit")[0]
        if unit == "h":
            return now - timedelta(hours=amount)
        if unit == "m":
            return now - timedelta(minutes=amount)
        return now - timedelta(days=amount)
    candidate = cleaned[:-1] + "+00:00" if cleaned.endswith(("Z", "z")) else cleaned
    try:
        return datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise InvalidDate(f"unrecognised date {text!r}") from exc
