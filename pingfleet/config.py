"""Configuration for pingfleet monitors.

Settings come from keyword arguments or, for the headless runner, from
PINGFLEET_* environment variables. Invalid environment values are logged
and replaced with the defaults.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.5  # seconds
DEFAULT_INTERVAL = 2.0
DEFAULT_MAX_HISTORY = 50
DEFAULT_HOSTS = ("8.8.8.8", "1.1.1.1")


def clamp_interval(seconds: float) -> float:
    return max(MIN_INTERVAL, float(seconds))


def clamp_max_history(count: int) -> int:
    return max(1, int(count))


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry, backoff and cooldown parameters for a HostMonitor.

    Attributes:
        probe_timeout: Seconds to wait for a reply before a cycle fails
        cooldown_threshold: Consecutive failures that trigger a pause
        cooldown_duration: Seconds to suspend probing once paused
        max_backoff_interval: Upper bound for the backed-off interval
        cap_exponent: Upper bound for the backoff exponent
    """

    probe_timeout: float = 2.0
    cooldown_threshold: int = 5
    cooldown_duration: float = 120.0
    max_backoff_interval: float = 30.0
    cap_exponent: int = 10

    def __post_init__(self):
        if self.probe_timeout <= 0:
            raise ValueError("probe_timeout must be positive")
        if self.cooldown_threshold < 1:
            raise ValueError("cooldown_threshold must be at least 1")
        if self.cooldown_duration < 0:
            raise ValueError("cooldown_duration must not be negative")
        if self.max_backoff_interval <= 0:
            raise ValueError("max_backoff_interval must be positive")
        if self.cap_exponent < 0:
            raise ValueError("cap_exponent must not be negative")


@dataclass(frozen=True)
class MonitorSettings:
    """Fleet-wide settings used by the headless runner."""

    interval: float = DEFAULT_INTERVAL
    max_history: int = DEFAULT_MAX_HISTORY
    hosts: tuple[str, ...] = DEFAULT_HOSTS
    policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    prober: str = "ping"  # "ping" or "fake"

    @classmethod
    def from_env(cls, environ=None) -> "MonitorSettings":
        """Build settings from PINGFLEET_* environment variables.

        Environment Variables:
            PINGFLEET_INTERVAL: Base probe interval in seconds (min 0.5)
            PINGFLEET_MAX_HISTORY: Samples kept per host (min 1)
            PINGFLEET_HOSTS: Comma-separated host list
            PINGFLEET_PROBE_TIMEOUT: Per-probe reply window in seconds
            PINGFLEET_COOLDOWN_THRESHOLD: Failures before pausing a host
            PINGFLEET_COOLDOWN_SECONDS: Length of a pause in seconds
            PINGFLEET_PROBER: "ping" (default) or "fake"
        """
        if environ is None:
            environ = os.environ

        interval = clamp_interval(_read(environ, "PINGFLEET_INTERVAL", float, DEFAULT_INTERVAL))
        max_history = clamp_max_history(
            _read(environ, "PINGFLEET_MAX_HISTORY", int, DEFAULT_MAX_HISTORY)
        )

        hosts_raw = environ.get("PINGFLEET_HOSTS", "")
        hosts = tuple(h.strip() for h in hosts_raw.split(",") if h.strip()) or DEFAULT_HOSTS

        defaults = BackoffPolicy()
        try:
            policy = BackoffPolicy(
                probe_timeout=_read(
                    environ, "PINGFLEET_PROBE_TIMEOUT", float, defaults.probe_timeout
                ),
                cooldown_threshold=_read(
                    environ, "PINGFLEET_COOLDOWN_THRESHOLD", int, defaults.cooldown_threshold
                ),
                cooldown_duration=_read(
                    environ, "PINGFLEET_COOLDOWN_SECONDS", float, defaults.cooldown_duration
                ),
            )
        except ValueError as e:
            logger.warning("Invalid backoff settings, using defaults: %s", e)
            policy = defaults

        prober = environ.get("PINGFLEET_PROBER", "ping").strip().lower() or "ping"
        if prober not in ("ping", "fake"):
            logger.warning("Unknown PINGFLEET_PROBER=%s, using ping", prober)
            prober = "ping"

        return cls(
            interval=interval,
            max_history=max_history,
            hosts=hosts,
            policy=policy,
            prober=prober,
        )


def _read(environ, name, convert, default):
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return convert(value.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (using %s)", name, value, default)
        return default
