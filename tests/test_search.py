"""Tests for find_set and conflicts."""

import math
from datetime import timedelta

import pytest

from conftest import iv, ts

from timectl import (
    Interval,
    IntervalIterator,
    MemDb,
    StoreSettings,
    conflicts,
    find_set,
    memdb,
)
from timectl.util import MINUTE

START = ts("2024-01-01T08:00:00")
END = ts("2024-01-01T15:00:00")


# find_set


def test_find_set_first(schedule):
    """The first 90 minute run at priority <= 1.0 bridges the 12:45 gap."""
    db, added = schedule
    i1245_1300 = Interval.free_slot(ts("2024-01-01T12:45:00"), ts("2024-01-01T13:00:00"))

    with db.tx() as tx:
        ivs = find_set(tx, True, START, END, 90 * MINUTE, 1.0)

    assert ivs == [added["1200_1245"], i1245_1300, added["1300_1400"]]
    assert ivs[0].priority == 1.0
    assert ivs[1].priority == 0.0
    assert ivs[1].id == 0
    assert ivs[2].priority == 1.0


def test_find_set_last(schedule):
    """Reverse runs come back in discovery order, latest first."""
    db, added = schedule

    with db.tx() as tx:
        ivs = find_set(tx, False, START, END, 90 * MINUTE, 1.0)

    assert ivs == [added["1400_1500"], added["1300_1400"]]


def test_find_set_accepts_timedelta(schedule):
    db, added = schedule

    with db.tx() as tx:
        ivs = find_set(tx, False, START, END, timedelta(minutes=90), 1.0)

    assert ivs == [added["1400_1500"], added["1300_1400"]]


def test_find_set_resets_on_gap():
    """Without free gaps, the 15 minute hole breaks the run."""
    db = memdb(
        iv(5, "08:00", "09:00", 1.0),
        iv(40, "12:00", "12:45", 1.0),
        iv(50, "13:00", "14:00", 1.0),
        iv(60, "14:00", "15:00", 1.0),
        settings=StoreSettings(fill_gaps=False),
    )

    with db.tx() as tx:
        ivs = find_set(tx, True, START, END, 90 * MINUTE, 1.0)

    assert [e.id for e in ivs] == [50, 60]


def test_find_set_reverse_resets_on_gap():
    db = memdb(
        iv(1, "08:00", "09:00", 1.0),
        iv(2, "09:00", "10:00", 1.0),
        iv(3, "11:00", "12:00", 1.0),
        settings=StoreSettings(fill_gaps=False),
    )

    with db.tx() as tx:
        ivs = find_set(tx, False, START, END, 90 * MINUTE, 1.0)

    assert [e.id for e in ivs] == [2, 1]


def test_find_set_priority_blocks_run(schedule):
    """At priority <= 0 only free gaps qualify, and the one gap is too short."""
    db, _ = schedule

    with db.tx() as tx:
        assert find_set(tx, True, START, END, 30 * MINUTE, 0.0) == []
        ivs = find_set(tx, True, START, END, 15 * MINUTE, 0.0)

    assert [(e.id, e.duration) for e in ivs] == [(0, 15 * MINUTE)]


def test_find_set_zero_duration_returns_first_candidate(schedule):
    db, added = schedule

    with db.tx() as tx:
        assert find_set(tx, True, START, END, 0, 1.0) == [added["0800_0900"]]
        assert find_set(tx, False, START, END, 0, 1.0) == [added["1400_1500"]]


def test_find_set_empty_store(settings):
    db = MemDb(settings=settings)

    with db.tx() as tx:
        assert find_set(tx, True, START, END, 0, 99.0) == []
        assert find_set(tx, False, START, END, 30 * MINUTE, 99.0) == []


def test_find_set_nothing_long_enough(schedule):
    db, _ = schedule

    with db.tx() as tx:
        assert find_set(tx, True, START, END, 8 * 60 * MINUTE, 99.0) == []


def test_find_set_respects_window(schedule):
    db, added = schedule

    with db.tx() as tx:
        ivs = find_set(tx, True, START, ts("2024-01-01T10:00:00"), 2 * 60 * MINUTE, 99.0)

    assert ivs == [added["0800_0900"], added["0900_1000"]]


@pytest.mark.parametrize("first", [True, False])
@pytest.mark.parametrize("minutes", [0, 30, 60, 90, 100, 180, 240])
@pytest.mark.parametrize("max_priority", [1.0, 2.0, 99.0])
def test_find_set_run_properties(schedule, first, minutes, max_priority):
    """Any run found is contiguous, long enough, and stops as soon as it is."""
    db, _ = schedule
    min_duration = minutes * MINUTE

    with db.tx() as tx:
        ivs = find_set(tx, first, START, END, min_duration, max_priority)

    if not ivs:
        return

    total = sum(e.duration for e in ivs)
    assert total >= min_duration
    assert total - ivs[-1].duration < min_duration or len(ivs) == 1
    assert all(e.priority <= max_priority for e in ivs)
    for prev, nxt in zip(ivs, ivs[1:]):
        if first:
            assert nxt.start <= prev.end
        else:
            assert prev.start <= nxt.end


def test_find_set_uses_gap_up_to_window_end(settings):
    """The free time between the last booking and the window end counts."""
    db = memdb(iv(1, "08:00", "09:00", 1.0), iv(2, "12:00", "13:00", 1.0), settings=settings)
    window_start = ts("2024-01-01T08:00:00")
    window_end = ts("2024-01-01T11:00:00")

    with db.tx() as tx:
        ivs = find_set(tx, True, window_start, window_end, 180 * MINUTE, 1.0)

    assert ivs == [
        iv(1, "08:00", "09:00"),
        Interval.free_slot(ts("2024-01-01T09:00:00"), window_end),
    ]


def test_find_set_reverse_uses_gap_down_to_window_start(settings):
    db = memdb(iv(1, "08:00", "09:00", 1.0), iv(2, "12:00", "13:00", 1.0), settings=settings)
    window_start = ts("2024-01-01T10:00:00")

    with db.tx() as tx:
        ivs = find_set(tx, False, window_start, ts("2024-01-01T13:00:00"), 180 * MINUTE, 1.0)

    assert ivs == [
        iv(2, "12:00", "13:00"),
        Interval.free_slot(window_start, ts("2024-01-01T12:00:00")),
    ]


def test_find_set_contiguity_follows_last_member(settings):
    """A gap after a nested member breaks the run, even inside a longer interval's span."""
    db = memdb(
        iv(1, "08:00", "12:00", 1.0),
        iv(2, "09:00", "10:00", 1.0),
        iv(3, "13:00", "14:00", 1.0),
        settings=settings,
    )
    window_end = ts("2024-01-01T14:00:00")

    with db.tx() as tx:
        assert find_set(tx, True, START, window_end, 5 * 60 * MINUTE, 99.0) == [
            iv(1, "08:00", "12:00"),
            iv(2, "09:00", "10:00"),
        ]
        # The free 12:00-13:00 slot starts after 10:00, so the run restarts there
        assert find_set(tx, True, START, window_end, 6 * 60 * MINUTE, 99.0) == []


# conflicts


def test_conflicts_with_busy_interval(blocks):
    db, _ = blocks
    candidate = Interval(
        id=99,
        start=ts("2024-01-01T09:30:00"),
        end=ts("2024-01-01T10:30:00"),
        priority=1.0,
    )

    with db.tx() as tx:
        assert conflicts(tx, candidate) is True


def test_no_conflict_in_gap(schedule):
    db, _ = schedule
    candidate = Interval(
        id=99,
        start=ts("2024-01-01T12:45:00"),
        end=ts("2024-01-01T13:00:00"),
        priority=1.0,
    )

    with db.tx() as tx:
        assert conflicts(tx, candidate) is False


def test_no_conflict_outside_data(blocks):
    db, _ = blocks
    candidate = Interval(id=99, start=ts("2024-01-02T09:00:00"), end=ts("2024-01-02T10:00:00"))

    with db.tx() as tx:
        assert conflicts(tx, candidate) is False


def test_free_intervals_do_not_conflict(settings):
    db = memdb(
        iv(1, "08:00", "09:00", 0.0),
        iv(2, "10:00", "11:00", 0.0),
        settings=settings,
    )
    candidate = iv(99, "08:30", "10:30")

    with db.tx() as tx:
        assert conflicts(tx, candidate) is False


def test_any_priority_conflicts(settings):
    """Conflicts ignores the priority filter: even huge priorities count."""
    db = memdb(iv(1, "08:00", "09:00", 1e9), settings=settings)

    with db.tx() as tx:
        assert conflicts(tx, iv(99, "08:59", "09:30")) is True


def test_conflicts_stops_at_first_busy_interval(blocks, monkeypatch):
    db, _ = blocks
    pulled: list[Interval] = []

    class Recording(IntervalIterator):
        def __init__(self, inner: IntervalIterator):
            self.inner = inner

        def next(self) -> Interval | None:
            found = self.inner.next()
            if found is not None:
                pulled.append(found)
            return found

    with db.tx() as tx:
        find_fwd_iter = tx.find_fwd_iter

        def recording_find_fwd_iter(*args, **kwargs):
            assert args[2] == math.inf
            return Recording(find_fwd_iter(*args, **kwargs))

        monkeypatch.setattr(tx, "find_fwd_iter", recording_find_fwd_iter)

        assert conflicts(tx, Interval(id=99, start=START, end=END)) is True

    assert [e.id for e in pulled] == [5]


def test_conflicts_does_not_modify_store(blocks):
    db, added = blocks

    with db.tx() as tx:
        before = tx.find_fwd(START, END, math.inf)
        conflicts(tx, iv(99, "09:00", "12:00"))
        after = tx.find_fwd(START, END, math.inf)

    assert before == after
    assert len(db) == len(added)
