"""Prober abstraction for pingfleet transports."""

from typing import Callable, Protocol


class Prober(Protocol):
    """Protocol for a single echo exchange with one host.

    A prober is started once per probe cycle. It reports back at most once,
    possibly from a worker thread:
    - observer(duration_seconds) when a reply arrived
    - error_observer(message) when the transport failed asynchronously
    Staying silent means no reply; the caller applies its own timeout.
    start() may raise to signal an immediate failure such as an unresolvable
    host.
    """

    observer: Callable[[float], None] | None
    error_observer: Callable[[str], None] | None

    def start(self) -> None:
        """Begin one echo attempt."""
        ...

    def halt(self, reset_sequence: bool = False) -> None:
        """Cancel any in-flight attempt. Safe to call when idle."""
        ...


ProberFactory = Callable[[str], Prober]
