"""Entry point for the headless pingfleet monitor."""

import logging
import signal
import sys

from PySide6.QtCore import QCoreApplication, QTimer

from pingfleet.config import MonitorSettings
from pingfleet.fake_prober import simulated_factory
from pingfleet.fleet import FleetMonitor
from pingfleet.logging_config import configure_logging

# Configure logging early
configure_logging()
logger = logging.getLogger(__name__)


def select_prober_factory(settings: MonitorSettings):
    """Pick the system ping prober, falling back to simulated replies.

    Returns:
        Tuple of (prober factory, fallback reason or None)
    """
    if settings.prober == "fake":
        logger.info("Simulated prober explicitly requested via PINGFLEET_PROBER")
        return simulated_factory(), "PINGFLEET_PROBER=fake"

    try:
        from pingfleet.prober_ping import SystemPingProber, system_ping_factory
    except ImportError as e:
        logger.warning("SystemPingProber unavailable: %s", e)
        return simulated_factory(), f"import failed: {e}"

    timeout_ms = round(settings.policy.probe_timeout * 1000)
    try:
        # Fail fast on a missing ping binary instead of once per cycle
        SystemPingProber("localhost", timeout_ms=timeout_ms)
    except ValueError as e:
        logger.error("SystemPingProber configuration invalid: %s", e)
        return simulated_factory(), f"configuration error: {e}"
    except OSError as e:
        logger.warning("Ping command unavailable: %s", e)
        return simulated_factory(), f"system error: {e}"

    logger.info("SystemPingProber initialized successfully")
    return system_ping_factory(timeout_ms=timeout_ms), None


def log_update(hosts):
    for record in hosts:
        if record.last_error:
            logger.info("%s: %s", record.host, record.last_error)
        else:
            logger.info("%s: %d ms", record.host, record.current_latency)


def main():
    """Main entry point: python -m pingfleet [host ...]"""
    app = QCoreApplication(sys.argv)

    settings = MonitorSettings.from_env()
    hosts = [h for h in sys.argv[1:] if h.strip()] or list(settings.hosts)

    prober_factory, fallback = select_prober_factory(settings)
    if fallback:
        logger.warning("Using simulated data (%s)", fallback)

    fleet = FleetMonitor.from_settings(settings, prober_factory)
    fleet.subscribe(log_update)
    for host in hosts:
        fleet.add_host(host)

    def shutdown(*_):
        fleet.stop_monitoring()
        app.quit()

    signal.signal(signal.SIGINT, shutdown)
    # Give the interpreter a chance to run the signal handler
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(250)

    logger.info("Monitoring %d hosts every %.1fs", len(hosts), settings.interval)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
