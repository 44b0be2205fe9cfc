"""Transactional interval storage.

This module provides the abstract base classes for interval stores, their
transactions and the iterators their queries return. ``timectl.db.memory``
holds the in-memory implementation.
"""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from timectl.errors import DuplicateIdError, InvalidIntervalError
from timectl.interval import Interval
from timectl.settings import StoreSettings
from timectl.util import MAX_TIMESTAMP, MIN_TIMESTAMP, parse_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    """Result of a write operation.

    Attributes:
        success: True if the operation succeeded, False otherwise
        event: The written interval if successful, None if failed
        error: The exception that occurred if failed, None if successful
    """

    success: bool
    event: Interval | None
    error: Exception | None


class IntervalIterator(ABC):
    """Lazy, single-pass producer of intervals.

    ``next()`` returns None once the iterator is exhausted and keeps doing
    so on later calls. Iterators are not restartable and must be drained by
    a single consumer.
    """

    @abstractmethod
    def next(self) -> Interval | None:
        """Return the next interval, or None when exhausted."""
        pass

    def __iter__(self) -> Iterator[Interval]:
        while (interval := self.next()) is not None:
            yield interval


class Tx(ABC):
    """A transaction over an interval store.

    Read transactions see the snapshot committed when they were opened.
    Write transactions additionally see their own adds, which become
    visible to other transactions on ``commit()``.
    """

    write: bool

    @property
    @abstractmethod
    def done(self) -> bool:
        """True once the transaction was committed or aborted."""
        pass

    @property
    @abstractmethod
    def settings(self) -> StoreSettings:
        pass

    @abstractmethod
    def commit(self) -> None:
        """Publish the transaction's writes and release it."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Discard the transaction's writes and release it."""
        pass

    @abstractmethod
    def add(self, interval: Interval) -> Interval:
        """Insert an interval.

        Raises:
            InvalidIntervalError: If the interval is malformed
            DuplicateIdError: If an interval with the same id is stored
            StorageFaultError: If the transaction is read-only or finished
        """
        pass

    @abstractmethod
    def get(self, id: int) -> Interval | None:
        """Return the stored interval with the given id, if any."""
        pass

    @abstractmethod
    def find_fwd_iter(
        self,
        start: Any,
        end: Any,
        max_priority: float,
        *,
        fill_gaps: bool | None = None,
    ) -> IntervalIterator:
        """Iterate intervals intersecting ``[start, end)`` by ascending start.

        Only intervals with ``priority <= max_priority`` are produced.
        Unless ``fill_gaps`` is False, gaps between consecutive stored
        intervals are produced as synthetic free intervals, as is the gap
        up to ``end`` when a stored interval starts at or after it.
        """
        pass

    @abstractmethod
    def find_rev_iter(
        self,
        start: Any,
        end: Any,
        max_priority: float,
        *,
        fill_gaps: bool | None = None,
    ) -> IntervalIterator:
        """Same as ``find_fwd_iter``, ordered by descending end."""
        pass

    def find_fwd(
        self,
        start: Any,
        end: Any,
        max_priority: float,
        *,
        fill_gaps: bool | None = None,
    ) -> list[Interval]:
        """Convenience method returning the results of ``find_fwd_iter``."""
        return list(self.find_fwd_iter(start, end, max_priority, fill_gaps=fill_gaps))

    def find_rev(
        self,
        start: Any,
        end: Any,
        max_priority: float,
        *,
        fill_gaps: bool | None = None,
    ) -> list[Interval]:
        """Convenience method returning the results of ``find_rev_iter``."""
        return list(self.find_rev_iter(start, end, max_priority, fill_gaps=fill_gaps))

    def add_many(self, intervals: Iterable[Interval]) -> list[WriteResult]:
        """Add several intervals, reporting each outcome.

        Rejected intervals are reported as failed results; storage faults
        still propagate.
        """
        results: list[WriteResult] = []
        for interval in intervals:
            try:
                added = self.add(interval)
            except (InvalidIntervalError, DuplicateIdError) as e:
                logger.debug("rejected %s: %s", interval, e)
                results.append(WriteResult(success=False, event=None, error=e))
            else:
                results.append(WriteResult(success=True, event=added, error=None))
        return results

    def __getitem__(self, item: slice) -> IntervalIterator:
        start = MIN_TIMESTAMP if item.start is None else item.start
        end = MAX_TIMESTAMP if item.stop is None else item.stop
        return self.find_fwd_iter(start, end, math.inf, fill_gaps=False)

    def __enter__(self) -> "Tx":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.done:
            return
        if exc_type is not None:
            self.abort()
        else:
            self.commit()


class Db(ABC):
    """An interval store handing out transactions."""

    @abstractmethod
    def tx(self, write: bool = False) -> Tx:
        """Open a transaction. Only one write transaction runs at a time."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the store's resources."""
        pass


def add_str(
    tx: Tx,
    id: int,
    start: str,
    end: str,
    priority: float,
    payload: Any = None,
) -> Interval:
    """Add an interval given ISO 8601 / RFC 3339 start and end strings.

    Strings without a UTC offset are read in the store's default timezone.

    Example:
        >>> add_str(tx, 5, "2024-01-01T08:00:00Z", "2024-01-01T09:00:00Z", 1.0)
    """
    tz = tx.settings.default_tz
    try:
        start_ts = parse_time(start, tz)
        end_ts = parse_time(end, tz)
    except ValueError as e:
        raise InvalidIntervalError(
            f"Cannot parse interval bounds {start!r} - {end!r}: {e}\n"
            f"Expected ISO 8601 strings, e.g. '2024-01-01T08:00:00Z'"
        ) from e

    interval = Interval(
        id=id, start=start_ts, end=end_ts, priority=priority, payload=payload
    )
    return tx.add(interval)


__all__ = ["Db", "Tx", "IntervalIterator", "WriteResult", "add_str"]
