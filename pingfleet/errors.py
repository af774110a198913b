"""Probe failure classification.

Probers report failures as whatever their transport produces: an exception
from the resolver, an errno from a socket call, or a line of text from the
system ping command. classify_probe_error() maps all of these onto a small
set of kinds with a message fit for display next to the host.
"""

import errno
import socket
from dataclasses import dataclass
from enum import Enum


class ProbeErrorKind(Enum):
    """Failure categories surfaced to fleet subscribers."""

    INVALID_HOST = "invalid_host"
    DNS_RESOLUTION_FAILED = "dns_resolution_failed"
    CONNECTION_TIMED_OUT = "connection_timed_out"
    HOST_UNREACHABLE = "host_unreachable"
    NO_ROUTE_TO_HOST = "no_route_to_host"
    CONNECTION_REFUSED = "connection_refused"
    NETWORK_UNREACHABLE = "network_unreachable"
    UNKNOWN = "unknown"
    TEMPORARILY_PAUSED = "temporarily_paused"


@dataclass(frozen=True)
class ProbeError:
    """A classified probe failure."""

    kind: ProbeErrorKind
    host: str
    message: str
    raw: str = ""

    def __str__(self) -> str:
        return self.message


# Ordered: the first matching pattern wins.
_PATTERNS = [
    (("error 8", "nodename nor servname provided", "name or service not known"),
     ProbeErrorKind.INVALID_HOST, "Host '{host}' could not be resolved (invalid hostname)"),
    (("error 9", "address family not supported", "addresslookuperror",
      "temporary failure in name resolution", "cannot resolve"),
     ProbeErrorKind.DNS_RESOLUTION_FAILED, "Host '{host}' could not be resolved (DNS lookup failed)"),
    (("error -1003", "server with the specified hostname could not be found"),
     ProbeErrorKind.DNS_RESOLUTION_FAILED, "Host '{host}' could not be found (DNS resolution failed)"),
    (("error -1001", "request timed out", "timed out"),
     ProbeErrorKind.CONNECTION_TIMED_OUT, "Connection to '{host}' timed out"),
    (("error -1004", "could not connect to the server"),
     ProbeErrorKind.HOST_UNREACHABLE, "Could not connect to host '{host}'"),
    (("network is unreachable",),
     ProbeErrorKind.NETWORK_UNREACHABLE, "Network is unreachable for host '{host}'"),
    (("host is down", "destination host unreachable", "host unreachable"),
     ProbeErrorKind.HOST_UNREACHABLE, "Host '{host}' is down or unreachable"),
    (("no route to host",),
     ProbeErrorKind.NO_ROUTE_TO_HOST, "No route to host '{host}'"),
    (("connection refused",),
     ProbeErrorKind.CONNECTION_REFUSED, "Connection refused by host '{host}'"),
    (("hostnotfound", "unknown host", "unknownhosterror"),
     ProbeErrorKind.INVALID_HOST, "Host '{host}' not found"),
    (("operation could not be completed",),
     ProbeErrorKind.UNKNOWN, "Failed to reach host '{host}' (network error)"),
]

_ERRNO_KINDS = {
    errno.ETIMEDOUT: ProbeErrorKind.CONNECTION_TIMED_OUT,
    errno.ENETUNREACH: ProbeErrorKind.NETWORK_UNREACHABLE,
    errno.EHOSTUNREACH: ProbeErrorKind.HOST_UNREACHABLE,
    errno.EHOSTDOWN: ProbeErrorKind.HOST_UNREACHABLE,
    errno.ECONNREFUSED: ProbeErrorKind.CONNECTION_REFUSED,
}

_KIND_MESSAGES = {
    ProbeErrorKind.CONNECTION_TIMED_OUT: "Connection to '{host}' timed out",
    ProbeErrorKind.NETWORK_UNREACHABLE: "Network is unreachable for host '{host}'",
    ProbeErrorKind.HOST_UNREACHABLE: "Host '{host}' is down or unreachable",
    ProbeErrorKind.CONNECTION_REFUSED: "Connection refused by host '{host}'",
}


def classify_probe_error(raw: BaseException | str, host: str) -> ProbeError:
    """Classify a raw prober failure into a ProbeError.

    Args:
        raw: Exception raised by the prober, or the message it reported
        host: Host the probe was aimed at

    Returns:
        ProbeError with a display message; unknown failures keep the raw text
    """
    raw_text = str(raw) if str(raw) else type(raw).__name__

    if isinstance(raw, socket.gaierror):
        if raw.errno == socket.EAI_NONAME:
            return ProbeError(
                ProbeErrorKind.INVALID_HOST,
                host,
                f"Host '{host}' could not be resolved (invalid hostname)",
                raw_text,
            )
        return ProbeError(
            ProbeErrorKind.DNS_RESOLUTION_FAILED,
            host,
            f"Host '{host}' could not be resolved (DNS lookup failed)",
            raw_text,
        )

    if isinstance(raw, TimeoutError):
        return ProbeError(
            ProbeErrorKind.CONNECTION_TIMED_OUT, host, f"Connection to '{host}' timed out", raw_text
        )

    if isinstance(raw, OSError) and raw.errno in _ERRNO_KINDS:
        kind = _ERRNO_KINDS[raw.errno]
        return ProbeError(kind, host, _KIND_MESSAGES[kind].format(host=host), raw_text)

    lowered = raw_text.lower()
    for needles, kind, template in _PATTERNS:
        if any(needle in lowered for needle in needles):
            return ProbeError(kind, host, template.format(host=host), raw_text)

    return ProbeError(ProbeErrorKind.UNKNOWN, host, f"Error reaching '{host}': {raw_text}", raw_text)


def timeout_error(host: str) -> ProbeError:
    """Error for a probe cycle that got no reply within its window."""
    return ProbeError(
        ProbeErrorKind.CONNECTION_TIMED_OUT, host, f"Timeout - no response from {host}"
    )


def invalid_host_error(host: str) -> ProbeError:
    return ProbeError(ProbeErrorKind.INVALID_HOST, host, "Empty ping host")


def paused_error(host: str, cooldown_seconds: float) -> ProbeError:
    """Notice emitted once when probing of a host is suspended."""
    return ProbeError(
        ProbeErrorKind.TEMPORARILY_PAUSED,
        host,
        f"Pinging '{host}' temporarily paused after repeated failures "
        f"(retrying in {cooldown_seconds:.0f}s)",
    )
