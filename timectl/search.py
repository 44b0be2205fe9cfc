"""Searches built on transaction queries: conflict checks and contiguous runs."""

import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

from timectl.db import Tx
from timectl.interval import Interval
from timectl.util import coerce_duration

logger = logging.getLogger(__name__)


def conflicts(tx: Tx, candidate: Interval) -> bool:
    """Return True if any busy interval intersects the candidate.

    Free intervals (priority zero) never conflict. The scan stops at the
    first busy interval found.
    """
    for found in tx.find_fwd_iter(candidate.start, candidate.end, math.inf):
        if found.priority != 0:
            logger.debug("%s conflicts with %s", candidate, found)
            return True
    return False


class RunState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    SATISFIED = "satisfied"


@dataclass
class _Run:
    """A contiguous run of intervals being accumulated in scan order."""

    forward: bool
    min_duration: int
    members: list[Interval] = field(default_factory=list)
    duration: int = 0

    @property
    def state(self) -> RunState:
        if not self.members:
            return RunState.EMPTY
        if self.duration >= self.min_duration:
            return RunState.SATISFIED
        return RunState.ACCUMULATING

    def breaks(self, candidate: Interval) -> bool:
        """True if the candidate does not touch the most recent member."""
        if not self.members:
            return False
        last = self.members[-1]
        if self.forward:
            return candidate.start > last.end
        return candidate.end < last.start

    def restart(self, candidate: Interval) -> None:
        self.members = [candidate]
        self.duration = candidate.duration

    def append(self, candidate: Interval) -> None:
        self.members.append(candidate)
        self.duration += candidate.duration


def find_set(
    tx: Tx,
    first: bool,
    min_start: Any,
    max_end: Any,
    min_duration: int | timedelta,
    max_priority: float,
) -> list[Interval]:
    """Find a contiguous run of intervals with a combined duration.

    Scans ``[min_start, max_end)`` forward when ``first`` is True and in
    reverse otherwise, considering intervals with ``priority <=
    max_priority`` including the synthetic free intervals the query
    produces for gaps. Members are accumulated while each new candidate
    touches or overlaps the previous one; a gap restarts the run with the
    candidate alone. The first run whose total duration reaches
    ``min_duration`` is returned in discovery order, so reverse runs come
    back latest first.

    Args:
        tx: Transaction to query
        first: True for the earliest matching run, False for the latest
        min_start: Start of the search window
        max_end: End of the search window (exclusive)
        min_duration: Required total duration, seconds or timedelta
        max_priority: Highest priority a member may have

    Returns:
        The run, or an empty list if no run in the window is long enough
    """
    min_duration = coerce_duration(min_duration)

    if first:
        candidates = tx.find_fwd_iter(min_start, max_end, max_priority)
    else:
        candidates = tx.find_rev_iter(min_start, max_end, max_priority)

    run = _Run(forward=first, min_duration=min_duration)

    while (candidate := candidates.next()) is not None:
        if run.breaks(candidate):
            logger.debug(
                "restarting run at %s: not contiguous with %s",
                candidate,
                run.members[-1],
            )
            run.restart(candidate)
        else:
            run.append(candidate)

        if run.state is RunState.SATISFIED:
            logger.debug("found run of %d intervals, %ds", len(run.members), run.duration)
            return run.members

    return []
