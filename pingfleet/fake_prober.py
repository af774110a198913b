"""Fake probers for pingfleet testing and simulation."""

import errno
import logging
import random
import socket
import threading
from dataclasses import dataclass

from pingfleet.workers import ProbeTask, submit

logger = logging.getLogger(__name__)

IMMEDIATE_SUCCESS = "immediate_success"
TIMEOUT = "timeout"
SLOW_RESPONSE = "slow_response"
NETWORK_OFF = "network_off"
DNS_ERROR = "dns_error"
ASYNC_ERROR = "async_error"


@dataclass(frozen=True)
class FakeBehavior:
    """What a FakeProber does on one start() call."""

    kind: str
    delay: float = 0.0
    message: str = ""

    @classmethod
    def immediate_success(cls, duration: float = 0.01) -> "FakeBehavior":
        return cls(IMMEDIATE_SUCCESS, delay=duration)

    @classmethod
    def timeout(cls) -> "FakeBehavior":
        return cls(TIMEOUT)

    @classmethod
    def slow_response(cls, delay: float) -> "FakeBehavior":
        return cls(SLOW_RESPONSE, delay=delay)

    @classmethod
    def network_off(cls) -> "FakeBehavior":
        return cls(NETWORK_OFF)

    @classmethod
    def dns_error(cls) -> "FakeBehavior":
        return cls(DNS_ERROR)

    @classmethod
    def async_error(cls, message: str, delay: float = 0.01) -> "FakeBehavior":
        return cls(ASYNC_ERROR, delay=delay, message=message)


class FakeProber:
    """Deterministic prober driven by a script of behaviours.

    A single behaviour is repeated on every start(); a sequence is cycled
    through, one entry per start(). Replies are delivered from a pool
    thread after the behaviour's delay, like real network I/O. The same
    instance can serve every cycle (factory = lambda host: prober).
    """

    def __init__(self, behaviors=None, thread_pool=None):
        if behaviors is None:
            behaviors = [FakeBehavior.immediate_success()]
        elif isinstance(behaviors, FakeBehavior):
            behaviors = [behaviors]
        self.behaviors = list(behaviors)
        self.thread_pool = thread_pool

        self.observer = None
        self.error_observer = None

        self._lock = threading.Lock()
        self._index = 0
        self.starts = 0
        self.halts = 0

    def next_behavior(self) -> FakeBehavior:
        with self._lock:
            if not self.behaviors:
                return FakeBehavior.timeout()
            behavior = self.behaviors[self._index % len(self.behaviors)]
            self._index += 1
            return behavior

    def start(self):
        behavior = self.next_behavior()
        with self._lock:
            self.starts += 1
        logger.debug("Fake probe: behavior=%s, delay=%.3f", behavior.kind, behavior.delay)

        if behavior.kind == NETWORK_OFF:
            raise OSError(errno.ENETUNREACH, "Network is unreachable")
        if behavior.kind == DNS_ERROR:
            raise socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution")
        if behavior.kind == TIMEOUT:
            return

        # Bind the callbacks now so a later cycle cannot receive this reply
        observer = self.observer
        error_observer = self.error_observer

        if behavior.kind == ASYNC_ERROR:
            def deliver():
                if error_observer is not None:
                    error_observer(behavior.message)
        else:
            def deliver():
                if observer is not None:
                    observer(behavior.delay)

        submit(ProbeTask("fake", deliver, delay=behavior.delay), self.thread_pool)

    def halt(self, reset_sequence: bool = False):
        with self._lock:
            self.halts += 1
            if reset_sequence:
                self._index = 0


class SimulatedProber:
    """Prober producing random but plausible replies for one host."""

    def __init__(self, host: str, seed: int | None = None, thread_pool=None):
        """Initialize with optional random seed for deterministic behavior."""
        # Isolated random instance for thread safety
        self._random = random.Random(seed)
        self.host = host
        self.thread_pool = thread_pool

        self.observer = None
        self.error_observer = None

        # Simulation parameters
        self.base_latency = 25.0  # Base latency in ms
        self.latency_variance = 5.0  # Normal variance
        self.spike_probability = 0.05  # 5% chance of latency spike
        self.spike_multiplier = 3.0  # Spike makes latency 3x higher
        self.loss_probability = 0.02  # 2% chance of packet loss

    def sample_latency_ms(self) -> float | None:
        """Draw one latency in ms, or None for a lost packet."""
        if self._random.random() < self.loss_probability:
            return None

        if self._random.random() < self.spike_probability:
            latency = self.base_latency * self.spike_multiplier + self._random.gauss(
                0, self.latency_variance
            )
        else:
            latency = self.base_latency + self._random.gauss(0, self.latency_variance)

        return max(0.1, latency)

    def start(self):
        if not self.host or not self.host.strip():
            raise ValueError("Host cannot be empty")

        latency = self.sample_latency_ms()
        if latency is None:
            return

        observer = self.observer

        def deliver():
            if observer is not None:
                observer(latency / 1000.0)

        submit(ProbeTask(self.host, deliver, delay=latency / 1000.0), self.thread_pool)

    def halt(self, reset_sequence: bool = False):
        pass


def simulated_factory(seed: int | None = None):
    """Return a ProberFactory creating one SimulatedProber per host."""
    probers = {}

    def factory(host: str) -> SimulatedProber:
        prober = probers.get(host)
        if prober is None:
            prober = SimulatedProber(host, seed=seed)
            probers[host] = prober
        return prober

    return factory
