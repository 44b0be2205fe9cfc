"""In-memory interval store.

This module provides MemDb, a transactional store backed by immutable
sorted indexes. Writers copy on write and publish a new index on commit,
so readers always see a consistent snapshot.
"""

import bisect
import logging
import threading
from collections.abc import Iterable, Iterator
from typing import Any

from typing_extensions import override

from timectl.db import Db, IntervalIterator, Tx
from timectl.errors import DuplicateIdError, StorageFaultError
from timectl.interval import Interval
from timectl.settings import StoreSettings
from timectl.util import coerce_time

logger = logging.getLogger(__name__)


class _Index:
    """Immutable snapshot of the stored intervals.

    Keeps two orderings: ascending ``(start, id)`` for forward scans and
    ascending ``(end, id)`` for reverse scans. Ids are unique, so both
    orders are total.
    """

    def __init__(self, intervals: Iterable[Interval] = ()):
        self._by_start: tuple[Interval, ...] = tuple(
            sorted(intervals, key=lambda e: (e.start, e.id))
        )
        self._by_end: tuple[Interval, ...] = tuple(
            sorted(self._by_start, key=lambda e: (e.end, e.id))
        )
        self._by_id: dict[int, Interval] = {e.id: e for e in self._by_start}

        # max_end_prefix[i] = max(e.end for e in by_start[:i+1])
        self._max_end_prefix: list[int] = []
        max_so_far: int | None = None
        for interval in self._by_start:
            if max_so_far is None or interval.end > max_so_far:
                max_so_far = interval.end
            self._max_end_prefix.append(max_so_far)

        # min_start_suffix[i] = min(e.start for e in by_end[i:])
        self._min_start_suffix: list[int] = [0] * len(self._by_end)
        min_so_far: int | None = None
        for i in range(len(self._by_end) - 1, -1, -1):
            start = self._by_end[i].start
            if min_so_far is None or start < min_so_far:
                min_so_far = start
            self._min_start_suffix[i] = min_so_far

    def __len__(self) -> int:
        return len(self._by_start)

    def __contains__(self, id: int) -> bool:
        return id in self._by_id

    def get(self, id: int) -> Interval | None:
        return self._by_id.get(id)

    def with_interval(self, interval: Interval) -> "_Index":
        return _Index((*self._by_start, interval))

    def scan_fwd(self, start: int, end: int) -> Iterator[Interval]:
        """Yield stored intervals intersecting ``[start, end)``, ascending start."""
        # Everything before the first position where max_end > start ends
        # on or before start
        lo = bisect.bisect_right(self._max_end_prefix, start)
        # Stop at the first interval starting at or after end
        hi = bisect.bisect_left(self._by_start, end, key=lambda e: e.start)

        for interval in self._by_start[lo:hi]:
            if interval.end <= start:
                continue
            yield interval

    def scan_rev(self, start: int, end: int) -> Iterator[Interval]:
        """Yield stored intervals intersecting ``[start, end)``, descending end."""
        # Skip intervals ending on or before start
        lo = bisect.bisect_right(self._by_end, start, key=lambda e: e.end)
        # From the first position where min_start >= end, nothing starts
        # before end
        hi = bisect.bisect_left(self._min_start_suffix, end)

        for i in range(hi - 1, lo - 1, -1):
            interval = self._by_end[i]
            if interval.start >= end:
                continue
            yield interval

    def first_after(self, end: int) -> Interval | None:
        """Return the first interval starting at or after ``end``."""
        i = bisect.bisect_left(self._by_start, end, key=lambda e: e.start)
        if i == len(self._by_start):
            return None
        return self._by_start[i]

    def last_before(self, start: int) -> Interval | None:
        """Return the latest-ending interval ending at or before ``start``."""
        i = bisect.bisect_right(self._by_end, start, key=lambda e: e.end)
        if i == 0:
            return None
        return self._by_end[i - 1]


class _ScanIterator(IntervalIterator):
    """Shared machinery for the forward and reverse find iterators.

    Subclasses provide the ordered scan and the gap between a scanned
    interval and the frontier of everything visited so far. Intervals
    hidden by the priority filter still advance the frontier, so their
    slots are never reported free. Once the scan is done, the gap up to
    the far window edge is reported if a stored interval lies beyond that
    edge; that interval itself is never yielded.
    """

    def __init__(
        self,
        index: _Index,
        start: int,
        end: int,
        max_priority: float,
        fill_gaps: bool,
    ):
        self.start: int = start
        self.end: int = end
        self.max_priority: float = max_priority
        self.fill_gaps: bool = fill_gaps
        self._index: _Index = index
        self._source: Iterator[Interval] = self._generate()

    @override
    def next(self) -> Interval | None:
        return next(self._source, None)

    def _scan(self) -> Iterator[Interval]:
        raise NotImplementedError

    def _gap(self, frontier: int | None, interval: Interval) -> Interval | None:
        raise NotImplementedError

    def _advance(self, frontier: int | None, interval: Interval) -> int:
        raise NotImplementedError

    def _edge_gap(self, frontier: int) -> Interval | None:
        raise NotImplementedError

    def _generate(self) -> Iterator[Interval]:
        if self.end <= self.start:
            return

        emit_free = self.fill_gaps and self.max_priority >= 0
        frontier: int | None = None

        for interval in self._scan():
            if emit_free:
                gap = self._gap(frontier, interval)
                if gap is not None:
                    yield gap

            frontier = self._advance(frontier, interval)

            if interval.priority > self.max_priority:
                continue

            yield interval

        if emit_free and frontier is not None:
            gap = self._edge_gap(frontier)
            if gap is not None:
                yield gap


class ForwardIterator(_ScanIterator):
    """Yields intervals by ascending start; the frontier is the furthest end seen."""

    @override
    def _scan(self) -> Iterator[Interval]:
        return self._index.scan_fwd(self.start, self.end)

    @override
    def _gap(self, frontier: int | None, interval: Interval) -> Interval | None:
        if frontier is None or interval.start <= frontier:
            return None
        return Interval.free_slot(frontier, interval.start)

    @override
    def _advance(self, frontier: int | None, interval: Interval) -> int:
        if frontier is None:
            return interval.end
        return max(frontier, interval.end)

    @override
    def _edge_gap(self, frontier: int) -> Interval | None:
        if frontier >= self.end or self._index.first_after(self.end) is None:
            return None
        return Interval.free_slot(frontier, self.end)


class ReverseIterator(_ScanIterator):
    """Yields intervals by descending end; the frontier is the earliest start seen."""

    @override
    def _scan(self) -> Iterator[Interval]:
        return self._index.scan_rev(self.start, self.end)

    @override
    def _gap(self, frontier: int | None, interval: Interval) -> Interval | None:
        if frontier is None or interval.end >= frontier:
            return None
        return Interval.free_slot(interval.end, frontier)

    @override
    def _advance(self, frontier: int | None, interval: Interval) -> int:
        if frontier is None:
            return interval.start
        return min(frontier, interval.start)

    @override
    def _edge_gap(self, frontier: int) -> Interval | None:
        if frontier <= self.start or self._index.last_before(self.start) is None:
            return None
        return Interval.free_slot(self.start, frontier)


class MemTx(Tx):
    """Transaction on a MemDb.

    Holds the index snapshot taken when it was opened. Write transactions
    replace their private index on every add and publish it on commit.
    """

    def __init__(self, db: "MemDb", write: bool):
        self.write: bool = write
        self._db: MemDb = db
        self._index: _Index = db._index
        self._done: bool = False

    def __str__(self) -> str:
        mode = "write" if self.write else "read"
        state = "done" if self._done else "open"
        return f"MemTx({mode}, {state}, {len(self._index)} intervals)"

    @property
    @override
    def done(self) -> bool:
        return self._done

    @property
    @override
    def settings(self) -> StoreSettings:
        return self._db.settings

    def _check_open(self) -> None:
        if self._done:
            raise StorageFaultError(
                f"Transaction already committed or aborted: {self}\n"
                f"Hint: open a new transaction with db.tx()"
            )

    @override
    def commit(self) -> None:
        self._check_open()
        self._done = True
        if self.write:
            if self._db._closed:
                self._db._release()
                raise StorageFaultError(
                    f"Cannot commit {self}: the store was closed.\n"
                    f"Its writes are discarded."
                )
            self._db._publish(self._index)
            logger.debug("committed %s", self)

    @override
    def abort(self) -> None:
        if self._done:
            return
        self._done = True
        if self.write:
            self._db._release()
            logger.debug("aborted %s", self)

    @override
    def add(self, interval: Interval) -> Interval:
        self._check_open()
        if not self.write:
            raise StorageFaultError(
                f"Cannot add {interval} through a read-only transaction.\n"
                f"Hint: open a write transaction with db.tx(write=True)"
            )
        if not isinstance(interval, Interval):
            raise TypeError(
                f"Expected an Interval, got {type(interval).__name__!r}: {interval!r}"
            )
        interval.validate()
        if interval.id in self._index:
            raise DuplicateIdError(
                f"Interval id {interval.id} is already stored: "
                f"{self._index.get(interval.id)}\n"
                f"Stored intervals are never overwritten; pick a new id."
            )

        self._index = self._index.with_interval(interval)
        logger.debug("added %s", interval)
        return interval

    @override
    def get(self, id: int) -> Interval | None:
        self._check_open()
        return self._index.get(id)

    def _resolve_fill_gaps(self, fill_gaps: bool | None) -> bool:
        if fill_gaps is None:
            return self.settings.fill_gaps
        return fill_gaps

    @override
    def find_fwd_iter(
        self,
        start: Any,
        end: Any,
        max_priority: float,
        *,
        fill_gaps: bool | None = None,
    ) -> ForwardIterator:
        self._check_open()
        return ForwardIterator(
            self._index,
            coerce_time(start, "start"),
            coerce_time(end, "end"),
            max_priority,
            self._resolve_fill_gaps(fill_gaps),
        )

    @override
    def find_rev_iter(
        self,
        start: Any,
        end: Any,
        max_priority: float,
        *,
        fill_gaps: bool | None = None,
    ) -> ReverseIterator:
        self._check_open()
        return ReverseIterator(
            self._index,
            coerce_time(start, "start"),
            coerce_time(end, "end"),
            max_priority,
            self._resolve_fill_gaps(fill_gaps),
        )


class MemDb(Db):
    """In-memory interval store with snapshot-isolated transactions.

    Only one write transaction may be open at a time; opening a second one
    blocks until the first commits or aborts.

    Attributes:
        settings: Store defaults (see StoreSettings)
    """

    def __init__(
        self,
        intervals: Iterable[Interval] = (),
        *,
        settings: StoreSettings | None = None,
    ) -> None:
        """Initialize an empty or pre-populated store.

        Args:
            intervals: Optional initial intervals, added in one transaction
            settings: Store defaults; loaded from the environment if omitted
        """
        self.settings: StoreSettings = settings if settings is not None else StoreSettings()
        self._index: _Index = _Index()
        self._writer: threading.Lock = threading.Lock()
        self._closed: bool = False

        intervals = list(intervals)
        if intervals:
            with self.tx(write=True) as tx:
                for interval in intervals:
                    tx.add(interval)

    def __len__(self) -> int:
        return len(self._index)

    @override
    def tx(self, write: bool = False) -> MemTx:
        if self._closed:
            raise StorageFaultError("Cannot open a transaction on a closed MemDb")
        if write:
            self._writer.acquire()
        return MemTx(self, write)

    @override
    def close(self) -> None:
        """Release the stored intervals. In-memory data is not saved."""
        self._closed = True
        self._index = _Index()

    def _publish(self, index: _Index) -> None:
        self._index = index
        self._release()

    def _release(self) -> None:
        self._writer.release()


def memdb(*intervals: Interval, settings: StoreSettings | None = None) -> MemDb:
    """Create an in-memory store holding the given intervals.

    Example:
        >>> from timectl import Interval
        >>> from timectl.db.memory import memdb
        >>>
        >>> db = memdb(
        ...     Interval(id=1, start=1000, end=2000, priority=1.0),
        ...     Interval(id=2, start=3000, end=4000, priority=2.0),
        ... )
        >>> with db.tx() as tx:
        ...     busy = tx.find_fwd(0, 5000, 1.0)
    """
    return MemDb(intervals, settings=settings)
