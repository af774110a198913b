"""Per-host probe loop with exponential backoff and cooldown."""

import logging
import time
from enum import Enum

from PySide6.QtCore import QObject, Qt, QTimer, Signal

from pingfleet.config import DEFAULT_INTERVAL, BackoffPolicy, clamp_interval
from pingfleet.errors import (
    ProbeError,
    classify_probe_error,
    invalid_host_error,
    paused_error,
    timeout_error,
)
from pingfleet.models import latency_ms_from_duration
from pingfleet.prober import ProberFactory

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    PROBING = "probing"
    PAUSED = "paused"
    STOPPED = "stopped"


class HostMonitor(QObject):
    """Drives the probe cycle for exactly one host.

    Key features:
    - Self-rescheduling single-shot timer, armed only after the previous
      cycle resolved (at most one probe in flight)
    - Bounded reply window per probe, independent of the interval
    - Exponential backoff on consecutive failures
    - Cooldown pause after repeated failures, announced once per episode
    - Cycle IDs for discarding replies that arrive after a restart or stop

    Thread-safe: probers may reply from any thread; replies are marshalled
    onto this object's thread with queued signals and all state is touched
    there only.
    """

    # Signals
    succeeded = Signal(str, int)  # (host, latency_ms)
    failed = Signal(str, object)  # (host, ProbeError)

    _replied = Signal(int, float)  # (cycle_id, duration_seconds)
    _errored = Signal(int, str)  # (cycle_id, raw message)

    def __init__(
        self,
        host: str,
        prober_factory: ProberFactory,
        interval: float = DEFAULT_INTERVAL,
        policy: BackoffPolicy | None = None,
        clock=time.monotonic,
        parent=None,
    ):
        """Initialize host monitor.

        Args:
            host: Hostname or IP address to probe
            prober_factory: Callable returning a Prober for a host
            interval: Base probe interval in seconds (min 0.5)
            policy: Timeout, backoff and cooldown parameters
            clock: Monotonic clock in seconds, used for cooldown deadlines
            parent: Qt parent object
        """
        super().__init__(parent)

        self.host = host
        self.prober_factory = prober_factory
        self.interval = clamp_interval(interval)
        self.policy = policy if policy is not None else BackoffPolicy()
        self._clock = clock

        # Backoff state
        self.failure_count = 0
        self._pause_until: float | None = None
        self._pause_notified = False

        # Cycle state
        self._active = False
        self._stopped = False
        self._in_flight = False
        self._cycle_id = 0
        self._prober = None
        self.scheduled_interval: float | None = None

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timer.timeout.connect(self._run_cycle)

        self._timeout_timer = QTimer(self)
        self._timeout_timer.setSingleShot(True)
        self._timeout_timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timeout_timer.timeout.connect(self._on_probe_timeout)

        self._replied.connect(self._on_probe_reply, Qt.ConnectionType.QueuedConnection)
        self._errored.connect(self._on_probe_error, Qt.ConnectionType.QueuedConnection)

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_paused(self) -> bool:
        return self._pause_until is not None and self._clock() < self._pause_until

    @property
    def state(self) -> MonitorState:
        if not self._active:
            return MonitorState.STOPPED if self._stopped else MonitorState.IDLE
        if self._in_flight:
            return MonitorState.PROBING
        if self.is_paused:
            return MonitorState.PAUSED
        if self._timer.isActive():
            return MonitorState.SCHEDULED
        return MonitorState.IDLE

    def calculate_interval(self) -> float:
        """Return the delay before the next cycle given current failures.

        Without failures this is the base interval exactly. Backoff never
        shortens the delay below the base interval, even when the base is
        above max_backoff_interval.
        """
        if self.failure_count == 0:
            return self.interval
        exponent = min(self.failure_count, self.policy.cap_exponent)
        ceiling = max(self.policy.max_backoff_interval, self.interval)
        return min(ceiling, self.interval * 2**exponent)

    def start(self):
        """Run one probe cycle now and keep cycling until stopped.

        Restarting an active monitor discards the in-flight probe but keeps
        the failure counters.
        """
        if self._active:
            self._cancel_cycle(reset_sequence=False)
        self._active = True
        self._stopped = False
        logger.debug("Monitor started: host=%s, interval=%.2fs", self.host, self.interval)
        self._run_cycle()

    def stop(self):
        """Stop cycling, halt any in-flight probe and reset failure state."""
        was_active = self._active
        self._active = False
        self._stopped = True
        self._cancel_cycle(reset_sequence=True)

        self.failure_count = 0
        self._pause_until = None
        self._pause_notified = False
        self.scheduled_interval = None

        if was_active:
            logger.debug("Monitor stopped: host=%s (cycle_id=%d)", self.host, self._cycle_id)

    def update_interval(self, interval: float):
        """Change the base interval, re-arming a pending timer.

        Args:
            interval: New base interval in seconds (clamped to 0.5)
        """
        self.interval = clamp_interval(interval)
        if self._timer.isActive():
            self._timer.stop()
            self._arm(self.calculate_interval())
        logger.debug("Interval updated: host=%s, interval=%.2fs", self.host, self.interval)

    def update_host(self, host: str):
        """Point the monitor at another host, restarting if active."""
        self.host = host
        if self._active:
            self.stop()
            self.start()

    def _cancel_cycle(self, reset_sequence: bool):
        self._timer.stop()
        self._timeout_timer.stop()
        # Invalidate replies still on their way
        self._cycle_id += 1
        self._in_flight = False

        prober = self._prober
        self._prober = None
        if prober is not None:
            prober.halt(reset_sequence)

    def _run_cycle(self):
        """Timer tick: probe the host unless paused or already probing."""
        if not self._active:
            return

        if self._in_flight:
            logger.debug("Cycle skipped: host=%s already in flight", self.host)
            return

        now = self._clock()
        if self._pause_until is not None and now < self._pause_until:
            remaining = self._pause_until - now
            self._notify_pause(remaining)
            if not self._active:
                return
            self._arm(max(self.interval, remaining))
            return

        self._pause_until = None
        self._pause_notified = False
        self._issue_probe()

    def _issue_probe(self):
        self._cycle_id += 1
        cycle_id = self._cycle_id
        host = self.host

        if not host or not host.strip():
            self._fail_cycle(invalid_host_error(host))
            return

        self._in_flight = True
        try:
            prober = self.prober_factory(host)
            prober.observer = lambda duration: self._replied.emit(cycle_id, duration)
            prober.error_observer = lambda message: self._errored.emit(cycle_id, message)
            self._prober = prober
            prober.start()
        except Exception as e:
            self._in_flight = False
            self._prober = None
            logger.warning("Probe start failed: host=%s, error=%s", host, str(e))
            self._fail_cycle(classify_probe_error(e, host))
            return

        logger.debug("Probe issued: host=%s, cycle_id=%d", host, cycle_id)
        self._timeout_timer.start(round(self.policy.probe_timeout * 1000))

    def _on_probe_reply(self, cycle_id: int, duration: float):
        if not self._accept(cycle_id):
            return

        self._finish_probe(halt=False)
        latency_ms = latency_ms_from_duration(duration)
        logger.debug("Probe reply: host=%s, latency=%dms", self.host, latency_ms)

        self.failure_count = 0
        self._pause_until = None
        self._pause_notified = False

        self.succeeded.emit(self.host, latency_ms)
        self._schedule_next()

    def _on_probe_error(self, cycle_id: int, message: str):
        if not self._accept(cycle_id):
            return

        self._finish_probe(halt=False)
        self._fail_cycle(classify_probe_error(message, self.host))

    def _on_probe_timeout(self):
        if not self._in_flight:
            return

        logger.debug("Probe timeout: host=%s, cycle_id=%d", self.host, self._cycle_id)
        self._finish_probe(halt=True)
        self._fail_cycle(timeout_error(self.host))

    def _accept(self, cycle_id: int) -> bool:
        if cycle_id != self._cycle_id or not self._in_flight or not self._active:
            logger.debug(
                "Ignoring stale result: host=%s, cycle_id=%d (current=%d)",
                self.host,
                cycle_id,
                self._cycle_id,
            )
            return False
        return True

    def _finish_probe(self, halt: bool):
        self._timeout_timer.stop()
        self._in_flight = False
        prober = self._prober
        self._prober = None
        if halt and prober is not None:
            prober.halt(False)

    def _notify_pause(self, remaining: float):
        if self._pause_notified:
            return
        self._pause_notified = True
        logger.info("Probing paused: host=%s, remaining=%.1fs", self.host, remaining)
        self.failed.emit(self.host, paused_error(self.host, remaining))

    def _fail_cycle(self, error: ProbeError):
        self.failure_count += 1
        entering_pause = self.failure_count >= self.policy.cooldown_threshold
        if entering_pause:
            self._pause_until = self._clock() + self.policy.cooldown_duration
            self._pause_notified = False
            logger.warning(
                "Host %s failed %d times in a row, pausing for %.0fs",
                self.host,
                self.failure_count,
                self.policy.cooldown_duration,
            )
        else:
            logger.debug(
                "Probe failed: host=%s, failures=%d, error=%s",
                self.host,
                self.failure_count,
                error.message,
            )

        self.failed.emit(self.host, error)
        # Announce the episode now; the next tick may come after it ended
        if entering_pause and self._active:
            self._notify_pause(self.policy.cooldown_duration)
        self._schedule_next()

    def _schedule_next(self):
        # A subscriber may have stopped us while handling the result
        if not self._active:
            return
        self._arm(self.calculate_interval())

    def _arm(self, seconds: float):
        self.scheduled_interval = seconds
        self._timer.start(max(1, round(seconds * 1000)))
