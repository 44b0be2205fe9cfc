"""Recurring intervals from RFC 5545 recurrence rules.

Rules are expanded with python-dateutil's rrule implementation into plain
intervals, which are then added to a transaction like any other interval.
"""

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta
from itertools import islice, takewhile
from typing import Any
from zoneinfo import ZoneInfo

from dateutil.rrule import rrulestr

from timectl.db import Tx
from timectl.interval import Interval
from timectl.util import coerce_duration, coerce_time, parse_datetime

logger = logging.getLogger(__name__)


def _is_bounded(rule: str) -> bool:
    upper = rule.upper()
    return "UNTIL=" in upper or "COUNT=" in upper


def occurrences(
    rule: str,
    dtstart: datetime | str,
    *,
    until: Any = None,
    count: int | None = None,
    tz: str = "UTC",
) -> Iterator[datetime]:
    """Yield the start datetimes of a recurrence rule.

    Args:
        rule: RRULE text, with or without the ``RRULE:`` prefix
            (e.g. ``"FREQ=DAILY;BYHOUR=9"``)
        dtstart: First occurrence; naive values and strings without an
            offset are interpreted in ``tz``
        until: Last allowed start (inclusive), as timestamp, datetime or date
        count: Maximum number of occurrences
        tz: IANA timezone name for naive inputs

    Raises:
        ValueError: If neither the rule nor the arguments bound the expansion
    """
    if until is None and count is None and not _is_bounded(rule):
        raise ValueError(
            f"Recurrence rule {rule!r} has no UNTIL or COUNT.\n"
            f"Expanding it would never finish.\n"
            f"Fix: pass until=... or count=..., or add COUNT=n to the rule"
        )

    if isinstance(dtstart, str):
        dtstart = parse_datetime(dtstart, tz)
    elif dtstart.tzinfo is None:
        dtstart = dtstart.replace(tzinfo=ZoneInfo(tz))

    result: Iterator[datetime] = iter(rrulestr(rule, dtstart=dtstart))

    if until is not None:
        until_ts = coerce_time(until, "start")
        result = takewhile(lambda dt: int(dt.timestamp()) <= until_ts, result)
    if count is not None:
        result = islice(result, count)

    return result


def add_recurring(
    tx: Tx,
    rule: str,
    dtstart: datetime | str,
    duration: int | timedelta,
    *,
    first_id: int,
    priority: float,
    until: Any = None,
    count: int | None = None,
    payload: Any = None,
) -> list[Interval]:
    """Add one interval per occurrence of a recurrence rule.

    Intervals get consecutive ids starting at ``first_id`` and all share
    ``priority`` and ``payload``. Naive datetimes are read in the store's
    default timezone.

    Example:
        >>> add_recurring(
        ...     tx,
        ...     "FREQ=WEEKLY;BYDAY=MO",
        ...     "2025-01-06T09:00:00",
        ...     30 * MINUTE,
        ...     first_id=100,
        ...     priority=1.0,
        ...     count=4,
        ... )

    Returns:
        The intervals added, in occurrence order
    """
    seconds = coerce_duration(duration)
    added: list[Interval] = []

    starts = occurrences(
        rule, dtstart, until=until, count=count, tz=tx.settings.default_tz
    )
    for offset, occurrence in enumerate(starts):
        start = int(occurrence.timestamp())
        interval = Interval(
            id=first_id + offset,
            start=start,
            end=start + seconds,
            priority=priority,
            payload=payload,
        )
        added.append(tx.add(interval))

    logger.debug("added %d occurrences of %r", len(added), rule)
    return added
