import pytest

from timectl import Interval, MemDb, StoreSettings, add_str, parse_time


def ts(text: str) -> int:
    """Timestamp for a UTC ISO string like ``2024-01-01T08:00:00``."""
    return parse_time(text)


def iv(id: int, start: str, end: str, priority: float = 1.0) -> Interval:
    """Build an interval from ``HH:MM`` times on 2024-01-01 (UTC)."""
    return Interval(
        id=id,
        start=ts(f"2024-01-01T{start}:00"),
        end=ts(f"2024-01-01T{end}:00"),
        priority=priority,
    )


@pytest.fixture
def settings() -> StoreSettings:
    """Explicit defaults so tests don't depend on TIMECTL_* variables."""
    return StoreSettings(fill_gaps=True, default_tz="UTC")


@pytest.fixture
def blocks(settings):
    """Six one-hour blocks from 08:00 to 14:00 with mixed priorities.

    Returns:
        Tuple of (db, dict mapping "HHMM_HHMM" labels to intervals).
    """
    db = MemDb(settings=settings)
    with db.tx(write=True) as tx:
        added = {
            "0800_0900": add_str(tx, 5, "2024-01-01T08:00:00", "2024-01-01T09:00:00", 1.0),
            "0900_1000": add_str(tx, 10, "2024-01-01T09:00:00", "2024-01-01T10:00:00", 2.0),
            "1000_1100": add_str(tx, 20, "2024-01-01T10:00:00", "2024-01-01T11:00:00", 3.0),
            "1100_1200": add_str(tx, 30, "2024-01-01T11:00:00", "2024-01-01T12:00:00", 2.0),
            "1200_1300": add_str(tx, 40, "2024-01-01T12:00:00", "2024-01-01T13:00:00", 1.0),
            "1300_1400": add_str(tx, 50, "2024-01-01T13:00:00", "2024-01-01T14:00:00", 1.0),
        }
    return db, added


@pytest.fixture
def schedule(settings):
    """Blocks from 08:00 to 15:00 with a 15 minute hole at 12:45.

    Returns:
        Tuple of (db, dict mapping "HHMM_HHMM" labels to intervals).
    """
    db = MemDb(settings=settings)
    with db.tx(write=True) as tx:
        added = {
            "0800_0900": tx.add(iv(5, "08:00", "09:00", 1.0)),
            "0900_1000": tx.add(iv(10, "09:00", "10:00", 2.0)),
            "1000_1100": tx.add(iv(20, "10:00", "11:00", 3.0)),
            "1100_1200": tx.add(iv(30, "11:00", "12:00", 2.0)),
            "1200_1245": tx.add(iv(40, "12:00", "12:45", 1.0)),
            "1300_1400": tx.add(iv(50, "13:00", "14:00", 1.0)),
            "1400_1500": tx.add(iv(60, "14:00", "15:00", 1.0)),
        }
    return db, added
