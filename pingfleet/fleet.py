"""Multi-host fan-out and aggregation of probe results."""

import logging
import threading
import time
from typing import Callable

from PySide6.QtCore import QObject, Signal

from pingfleet.config import (
    DEFAULT_INTERVAL,
    DEFAULT_MAX_HISTORY,
    BackoffPolicy,
    MonitorSettings,
    clamp_interval,
    clamp_max_history,
)
from pingfleet.errors import ProbeError, ProbeErrorKind
from pingfleet.host_monitor import HostMonitor
from pingfleet.models import FAILURE_SENTINEL, HostRecord
from pingfleet.prober import ProberFactory

logger = logging.getLogger(__name__)

# Assigned round-robin when the caller gives no display attribute
DEFAULT_PALETTE = (
    "#007AFF",  # blue
    "#34C759",  # green
    "#FF9500",  # orange
    "#AF52DE",  # purple
    "#FF3B30",  # red
    "#FFCC00",  # yellow
    "#FF2D55",  # pink
    "#30B0C7",  # teal
)

Subscriber = Callable[[list[HostRecord]], None]


class FleetMonitor(QObject):
    """Monitors a set of hosts and publishes one aggregated view.

    Key features:
    - One HostMonitor per distinct host, each with its own timer
    - Interval changes fanned out to every monitor
    - Bounded per-host latency history (0 marks a failed probe)
    - Every result publishes the entire collection to a single subscriber

    Thread-safe: the record map is guarded by a lock, so snapshot() and
    lookup() may be called from any thread. Results are applied on the
    thread that owns the fleet and its monitors.
    """

    # Signals
    probe_succeeded = Signal(str, int)  # (host, latency_ms)
    probe_failed = Signal(str, str)  # (host, error message)

    def __init__(
        self,
        prober_factory: ProberFactory,
        interval: float = DEFAULT_INTERVAL,
        max_history: int = DEFAULT_MAX_HISTORY,
        policy: BackoffPolicy | None = None,
        palette=DEFAULT_PALETTE,
        clock=time.monotonic,
        parent=None,
    ):
        """Initialize fleet monitor.

        Args:
            prober_factory: Callable returning a Prober for a host
            interval: Base probe interval in seconds (min 0.5)
            max_history: Samples kept per host (min 1)
            policy: Timeout, backoff and cooldown parameters for every host
            palette: Display attributes assigned to hosts added without one
            clock: Monotonic clock passed to each HostMonitor
            parent: Qt parent object
        """
        super().__init__(parent)

        self.prober_factory = prober_factory
        self.interval = clamp_interval(interval)
        self.max_history = clamp_max_history(max_history)
        self.policy = policy if policy is not None else BackoffPolicy()
        self.palette = tuple(palette)
        self._clock = clock

        self._lock = threading.Lock()
        self._records: dict[str, HostRecord] = {}
        self._monitors: dict[str, HostMonitor] = {}
        self._subscriber: Subscriber | None = None
        self._palette_index = 0

    @classmethod
    def from_settings(cls, settings: MonitorSettings, prober_factory: ProberFactory, parent=None):
        return cls(
            prober_factory,
            interval=settings.interval,
            max_history=settings.max_history,
            policy=settings.policy,
            parent=parent,
        )

    def subscribe(self, handler: Subscriber | None):
        """Register the single sink for aggregated updates.

        A second call replaces the previous handler; None removes it.
        """
        self._subscriber = handler

    def add_host(self, host: str, display_attribute=None):
        """Start monitoring a host.

        Args:
            host: Host to add (duplicates are ignored)
            display_attribute: Opaque value stored with the record
        """
        host = host.strip()

        with self._lock:
            if host in self._records:
                return
            if display_attribute is None and self.palette:
                display_attribute = self.palette[self._palette_index % len(self.palette)]
                self._palette_index += 1
            self._records[host] = HostRecord(host=host, display_attribute=display_attribute)
            count = len(self._records)

        monitor = HostMonitor(
            host,
            self.prober_factory,
            interval=self.interval,
            policy=self.policy,
            clock=self._clock,
            parent=self,
        )
        monitor.succeeded.connect(self._on_host_succeeded)
        monitor.failed.connect(self._on_host_failed)
        self._monitors[host] = monitor

        logger.debug("Host added: %s (total: %d)", host, count)
        monitor.start()
        self._publish()

    def remove_host(self, host: str):
        """Stop monitoring a host and drop its record.

        Args:
            host: Host to remove
        """
        host = host.strip()
        monitor = self._monitors.pop(host, None)
        if monitor is not None:
            monitor.stop()
            monitor.succeeded.disconnect(self._on_host_succeeded)
            monitor.failed.disconnect(self._on_host_failed)
            monitor.setParent(None)

        with self._lock:
            record = self._records.pop(host, None)
            remaining = len(self._records)

        if record is None:
            return

        logger.debug("Host removed: %s (remaining: %d)", host, remaining)
        self._publish()

    def hosts(self) -> list[str]:
        """Get monitored hosts in the order they were added."""
        with self._lock:
            return list(self._records)

    def snapshot(self) -> list[HostRecord]:
        """Get copies of every HostRecord in the order hosts were added."""
        with self._lock:
            return [record.copy() for record in self._records.values()]

    def lookup(self, host: str) -> HostRecord | None:
        with self._lock:
            record = self._records.get(host)
            return record.copy() if record is not None else None

    def monitor(self, host: str) -> HostMonitor | None:
        return self._monitors.get(host)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, host) -> bool:
        with self._lock:
            return host in self._records

    def set_interval(self, interval: float):
        """Update the base interval of every monitor.

        Args:
            interval: New interval in seconds (clamped to 0.5)
        """
        self.interval = clamp_interval(interval)
        for monitor in list(self._monitors.values()):
            monitor.update_interval(self.interval)
        logger.debug("Interval updated: %.2fs", self.interval)

    def set_max_history(self, count: int):
        """Change the history bound, truncating existing histories now."""
        self.max_history = clamp_max_history(count)
        with self._lock:
            for record in self._records.values():
                record.truncate(self.max_history)
        logger.debug("Max history updated: %d", self.max_history)
        self._publish()

    def clear_history(self):
        """Empty every host's history and publish once."""
        with self._lock:
            for record in self._records.values():
                record.clear()
        logger.debug("History cleared")
        self._publish()

    def start_monitoring(self):
        """(Re)start every monitor."""
        for monitor in list(self._monitors.values()):
            monitor.start()
        logger.info(
            "Monitoring started: %d hosts, interval=%.2fs", len(self._monitors), self.interval
        )

    def stop_monitoring(self):
        """Stop every monitor; records and histories are kept."""
        for monitor in list(self._monitors.values()):
            monitor.stop()
        logger.info("Monitoring stopped: %d hosts", len(self._monitors))

    def get_stats(self):
        """Get fleet statistics.

        Returns:
            Dict with fleet state info
        """
        with self._lock:
            failing = sum(1 for r in self._records.values() if r.is_failing)
            total = len(self._records)
        return {
            "hosts": total,
            "failing": failing,
            "paused": sum(1 for m in self._monitors.values() if m.is_paused),
            "active": sum(1 for m in self._monitors.values() if m.is_active),
            "interval": self.interval,
            "max_history": self.max_history,
        }

    def _on_host_succeeded(self, host: str, latency_ms: int):
        if self._apply_result(host, latency_ms, None):
            self.probe_succeeded.emit(host, latency_ms)

    def _on_host_failed(self, host: str, error: ProbeError):
        if error.kind is ProbeErrorKind.TEMPORARILY_PAUSED:
            # No probe ran, so there is no sample to record
            applied = self._apply_result(host, None, error.message)
        else:
            applied = self._apply_result(host, FAILURE_SENTINEL, error.message)
        if applied:
            self.probe_failed.emit(host, error.message)

    def _apply_result(self, host: str, latency_ms: int | None, error_message: str | None) -> bool:
        if host not in self._monitors:
            logger.debug("Ignoring result for removed host: %s", host)
            return False

        with self._lock:
            record = self._records.get(host)
            if record is None:
                return False
            if latency_ms is not None:
                record.append_sample(latency_ms, self.max_history)
            record.last_error = error_message

        self._publish()
        return True

    def _publish(self):
        handler = self._subscriber
        if handler is None:
            return
        hosts = self.snapshot()
        try:
            handler(hosts)
        except Exception as e:
            logger.exception("Subscriber raised while handling update: %s", str(e))
