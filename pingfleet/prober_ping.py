"""ICMP prober for pingfleet using the system ping command."""

import logging
import platform
import re
import shutil
import subprocess
import threading
import time
from math import ceil

from pingfleet.workers import ProbeTask, submit

logger = logging.getLogger(__name__)

_LESS_THAN_PATTERN = re.compile(r"time<(\d+)", re.IGNORECASE)
_LATENCY_PATTERN = re.compile(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_UNREACHABLE_PATTERN = re.compile(r"unreachable|no route|host is down", re.IGNORECASE)


def parse_ping_latency_ms(output: str) -> float | None:
    """Parse latency value from ping command output (pure function).

    Handles various ping output formats across platforms:
    - Linux/macOS: "time=12.3 ms"
    - Windows: "time=12ms" or "time<1ms"

    Windows "time<Nms" is interpreted as N/2 ms (midpoint estimate).
    For example, "time<1ms" => 0.5ms, "time<10ms" => 5.0ms.

    Args:
        output: Raw ping command output

    Returns:
        Latency in milliseconds (float), or None if parsing failed

    Examples:
        >>> parse_ping_latency_ms("time=12.3 ms")
        12.3
        >>> parse_ping_latency_ms("time<1ms")
        0.5
        >>> parse_ping_latency_ms("Request timed out.")
    """
    if not output:
        return None

    match = _LESS_THAN_PATTERN.search(output)
    if match:
        return float(match.group(1)) / 2.0

    match = _LATENCY_PATTERN.search(output)
    if match:
        try:
            return float(match.group(1))
        except (ValueError, IndexError):
            return None

    return None


def extract_ping_error(stdout: str, stderr: str) -> str | None:
    """Pick the line describing why ping failed, if it said so.

    Returns None for a plain lack of reply, which the caller treats as a
    timeout rather than an error.
    """
    if stderr and stderr.strip():
        return stderr.strip().splitlines()[-1]
    for line in (stdout or "").splitlines():
        if _UNREACHABLE_PATTERN.search(line):
            return line.strip()
    return None


def build_ping_command(host: str, timeout_ms: int, system: str | None = None) -> list[str]:
    """Build a platform-specific single-echo ping command.

    Args:
        host: Target host to ping
        timeout_ms: Reply timeout in milliseconds
        system: platform.system() value, detected when omitted

    Returns:
        List of command arguments for subprocess
    """
    if system is None:
        system = platform.system()

    if system == "Windows":
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]

    if system == "Linux":
        timeout_secs = max(1, ceil(timeout_ms / 1000.0))
        return ["ping", "-c", "1", "-W", str(timeout_secs), host]

    # macOS/BSD: -W has different semantics, rely on the subprocess timeout
    return ["ping", "-c", "1", host]


class SystemPingProber:
    """Prober that runs one OS ping per start() on a pool thread.

    Cross-platform implementation supporting Windows, Linux, and macOS.

    **Localization Limitation:**
    Parsing relies on the English keyword "time" in ping output. On
    non-English Windows systems the reply cannot be parsed and is reported
    as an error.
    """

    def __init__(self, host: str, timeout_ms: int = 1000, thread_pool=None):
        """Initialize ping prober.

        Args:
            host: Target hostname or IP address
            timeout_ms: Maximum time the ping command waits for a reply
            thread_pool: QThreadPool to run on, defaults to the global pool

        Raises:
            ValueError: timeout_ms is not positive
            OSError: no ping command is available
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if shutil.which("ping") is None:
            raise OSError("ping command not found")

        self.host = host
        self.timeout_ms = timeout_ms
        self.timeout_seconds = timeout_ms / 1000.0
        self.system = platform.system()
        self.thread_pool = thread_pool

        self.observer = None
        self.error_observer = None

        self._lock = threading.Lock()
        self._process: subprocess.Popen | None = None
        self._halted = False

    def start(self):
        """Launch one ping in the background.

        Raises:
            ValueError: host is empty
        """
        if not self.host or not self.host.strip():
            raise ValueError("Host cannot be empty")

        with self._lock:
            self._halted = False
        cmd = build_ping_command(self.host, self.timeout_ms, self.system)
        logger.debug("Starting ping: host=%s", self.host)
        submit(ProbeTask(self.host, lambda: self._run(cmd)), self.thread_pool)

    def halt(self, reset_sequence: bool = False):
        """Stop the running ping; there is no per-instance sequence to reset."""
        with self._lock:
            self._halted = True
            process = self._process
        if process is not None and process.poll() is None:
            logger.debug("Terminating ping: host=%s", self.host)
            process.terminate()

    def _run(self, cmd: list[str]):
        if self._is_halted():
            logger.debug("Ping skipped, cycle already over: host=%s", self.host)
            return

        started = time.monotonic()
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                shell=False,
            )
        except OSError as e:
            logger.warning("Ping error: host=%s, error=%s", self.host, str(e))
            self._report_error(str(e))
            return

        with self._lock:
            if self._halted:
                process.terminate()
            self._process = process

        try:
            stdout, stderr = process.communicate(timeout=self.timeout_seconds + 0.5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            logger.debug("Ping timeout: host=%s", self.host)
            return
        finally:
            with self._lock:
                self._process = None

        elapsed = time.monotonic() - started
        if self._is_halted():
            return

        logger.debug("Ping completed: host=%s, returncode=%d", self.host, process.returncode)

        if process.returncode == 0:
            latency = parse_ping_latency_ms(stdout)
            if latency is None:
                logger.debug(
                    "Parse failed: host=%s, output_preview=%s",
                    self.host,
                    stdout[:100] if stdout else "(empty)",
                )
                # Reply arrived but could not be read; the wall clock is the best estimate
                latency = elapsed * 1000.0
            if self.observer is not None:
                self.observer(latency / 1000.0)
            return

        message = extract_ping_error(stdout, stderr)
        if message is not None:
            self._report_error(message)

    def _report_error(self, message: str):
        if not self._is_halted() and self.error_observer is not None:
            self.error_observer(message)

    def _is_halted(self) -> bool:
        with self._lock:
            return self._halted


def system_ping_factory(timeout_ms: int = 2000):
    """Return a ProberFactory creating SystemPingProber instances."""

    def factory(host: str) -> SystemPingProber:
        return SystemPingProber(host, timeout_ms=timeout_ms)

    return factory
