"""Logging configuration for pingfleet."""

import logging
import os
import sys

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_logger_levels(value: str) -> tuple[dict[str, int], list[str]]:
    """Parse per-logger overrides such as "host_monitor=DEBUG,prober_ping=ERROR".

    Names without a dot are taken relative to the pingfleet package.

    Returns:
        Tuple of ({logger name: level}, [entries that could not be parsed])
    """
    levels = {}
    rejected = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, level_str = entry.partition("=")
        name = name.strip()
        level = LOG_LEVELS.get(level_str.strip().upper())
        if not sep or not name or level is None:
            rejected.append(entry)
            continue
        if "." not in name and name != "pingfleet":
            name = f"pingfleet.{name}"
        levels[name] = level
    return levels, rejected


def configure_logging() -> None:
    """Configure application-wide logging.

    Respects PINGFLEET_LOG_LEVEL environment variable (default: INFO) and
    PINGFLEET_LOG_LEVELS for per-module overrides.
    Logs to stderr with timestamp, level, module name, and message.

    Examples:
        # Per-cycle probe details
        $ PINGFLEET_LOG_LEVEL=DEBUG python -m pingfleet 8.8.8.8

        # Quiet overall, but trace the backoff state machine
        $ PINGFLEET_LOG_LEVEL=WARNING PINGFLEET_LOG_LEVELS=host_monitor=DEBUG python -m pingfleet
    """
    log_level_str = os.environ.get("PINGFLEET_LOG_LEVEL", "INFO").upper()
    log_level = LOG_LEVELS.get(log_level_str, logging.INFO)
    overrides, rejected = parse_logger_levels(os.environ.get("PINGFLEET_LOG_LEVELS", ""))

    # Module loggers pass records to the root handler, so its level must
    # not filter out an override that is more verbose than the default
    logging.basicConfig(
        level=min([log_level, *overrides.values()]),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )
    logging.getLogger("pingfleet").setLevel(log_level)
    for name, level in overrides.items():
        logging.getLogger(name).setLevel(level)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured: level=%s, overrides=%s",
        logging.getLevelName(log_level),
        {name: logging.getLevelName(level) for name, level in overrides.items()} or "none",
    )
    for entry in rejected:
        logger.warning("Ignoring invalid PINGFLEET_LOG_LEVELS entry %r", entry)
