from dataclasses import dataclass, field
from typing import Any

from timectl.errors import InvalidIntervalError


@dataclass(frozen=True, kw_only=True)
class Interval:
    """A prioritized, half-open time range ``[start, end)``.

    Times are Unix timestamps in seconds. A priority of exactly zero marks
    the interval as free. Equality and hashing use ``id``, ``start`` and
    ``end`` only; ``priority`` and ``payload`` ride along unchanged.
    """

    id: int
    start: int
    end: int
    priority: float = field(default=0.0, compare=False)
    payload: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Interval start ({self.start}) must be < end ({self.end}).\n"
                f"Zero-length and inverted intervals cannot be stored."
            )
        if self.id < 0:
            raise InvalidIntervalError(
                f"Interval id must be non-negative, got {self.id}"
            )

    @classmethod
    def free_slot(cls, start: int, end: int) -> "Interval":
        """Build a synthetic free interval covering ``[start, end)``."""
        return cls(id=0, start=start, end=end, priority=0.0)

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def busy(self) -> bool:
        return self.priority != 0

    @property
    def free(self) -> bool:
        return self.priority == 0

    def overlaps_range(self, start: int, end: int) -> bool:
        return self.start < end and self.end > start

    def wraps(self, other: "Interval") -> bool:
        """True if ``other`` lies entirely inside this interval."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        """Human-friendly string showing id, range, duration and priority."""
        return (
            f"Interval(#{self.id} {self.start}→{self.end}, "
            f"{self.duration}s, p={self.priority:g})"
        )
