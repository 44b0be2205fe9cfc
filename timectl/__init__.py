from .db import Db, IntervalIterator, Tx, WriteResult, add_str
from .db.memory import MemDb, memdb
from .errors import (
    DuplicateIdError,
    InvalidIntervalError,
    StorageFaultError,
    TimectlError,
)
from .interval import Interval
from .recurrence import add_recurring, occurrences
from .search import conflicts, find_set
from .settings import StoreSettings
from .util import DAY, HOUR, MINUTE, SECOND, WEEK, parse_time

__all__ = [
    "Interval",
    "Db",
    "Tx",
    "IntervalIterator",
    "WriteResult",
    "MemDb",
    "memdb",
    "StoreSettings",
    "conflicts",
    "find_set",
    "add_str",
    "add_recurring",
    "occurrences",
    "parse_time",
    "TimectlError",
    "InvalidIntervalError",
    "DuplicateIdError",
    "StorageFaultError",
    "SECOND",
    "MINUTE",
    "HOUR",
    "DAY",
    "WEEK",
]
