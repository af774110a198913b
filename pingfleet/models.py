"""Data models for pingfleet host records."""

from dataclasses import dataclass, field
from math import ceil

# Reserved latency value meaning "probe failed or timed out"
FAILURE_SENTINEL = 0


def latency_ms_from_duration(duration: float) -> int:
    """Convert a measured round-trip duration to whole milliseconds.

    Rounds up so that a sub-millisecond reply is reported as 1 ms and can
    never be mistaken for FAILURE_SENTINEL. The product is rounded to six
    decimals first so float noise (0.03 * 1000 == 30.000000000000004) does
    not push an exact value to the next millisecond.

    Args:
        duration: Round-trip time in seconds

    Returns:
        Latency in milliseconds, always >= 1

    Examples:
        >>> latency_ms_from_duration(0.0123)
        13
        >>> latency_ms_from_duration(0.0001)
        1
    """
    return max(1, ceil(round(duration * 1000, 6)))


@dataclass
class HostRecord:
    """Aggregated, consumer-visible state for one monitored host."""

    host: str
    history: list[int] = field(default_factory=list)  # oldest first, 0 = failure
    last_error: str | None = None
    display_attribute: object = None  # opaque, forwarded unchanged

    @property
    def current_latency(self) -> int:
        """Most recent sample, or FAILURE_SENTINEL when there is none."""
        if not self.history:
            return FAILURE_SENTINEL
        return self.history[-1]

    @property
    def is_failing(self) -> bool:
        return self.current_latency == FAILURE_SENTINEL and self.last_error is not None

    def append_sample(self, latency_ms: int, max_history: int):
        """Append a sample and evict the oldest ones beyond max_history."""
        self.history.append(latency_ms)
        self.truncate(max_history)

    def truncate(self, max_history: int):
        overflow = len(self.history) - max_history
        if overflow > 0:
            del self.history[:overflow]

    def clear(self):
        self.history.clear()

    def copy(self) -> "HostRecord":
        """Return a detached copy safe to hand to other threads."""
        return HostRecord(
            host=self.host,
            history=list(self.history),
            last_error=self.last_error,
            display_attribute=self.display_attribute,
        )
