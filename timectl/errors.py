"""Exceptions raised by timectl.

Empty query results are not errors: queries and ``find_set`` return an
empty list when nothing matches.
"""


class TimectlError(Exception):
    """Base class for all timectl errors."""


class InvalidIntervalError(TimectlError, ValueError):
    """A malformed interval, e.g. ``start >= end``."""


class DuplicateIdError(TimectlError, KeyError):
    """An interval with the same id is already stored."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the multi-line hint readable
        return str(self.args[0]) if self.args else ""


class StorageFaultError(TimectlError):
    """The store or transaction cannot serve the request."""
