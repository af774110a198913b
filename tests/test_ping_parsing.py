"""Unit tests for the system ping prober (pure function tests).

Tests parse_ping_latency_ms(), extract_ping_error() and build_ping_command()
across various ping output formats without requiring subprocess calls.
"""

import pytest

from pingfleet import prober_ping
from pingfleet.prober_ping import (
    SystemPingProber,
    build_ping_command,
    extract_ping_error,
    parse_ping_latency_ms,
)


class TestParsePingLatencyLinuxMacOS:
    """Test parsing Linux and macOS ping output formats."""

    def test_linux_standard_format(self):
        """Test standard Linux ping output: time=12.3 ms"""
        output = "64 bytes from example.com: icmp_seq=1 ttl=64 time=12.3 ms"
        assert parse_ping_latency_ms(output) == 12.3

    def test_macos_standard_format(self):
        """Test standard macOS ping output."""
        output = "64 bytes from 172.217.14.206: icmp_seq=0 ttl=56 time=8.123 ms"
        assert parse_ping_latency_ms(output) == 8.123

    def test_linux_multiline_output(self):
        """Test parsing from multi-line Linux output."""
        output = """
PING google.com (142.250.185.46) 56(84) bytes of data.
64 bytes from lga25s78-in-f14.1e100.net (142.250.185.46): icmp_seq=1 ttl=117 time=12.3 ms

--- google.com ping statistics ---
1 packets transmitted, 1 received, 0% packet loss, time 0ms
"""
        assert parse_ping_latency_ms(output) == 12.3

    def test_high_precision_decimal(self):
        output = "time=0.123 ms"
        assert parse_ping_latency_ms(output) == 0.123


class TestParsePingLatencyWindows:
    """Test parsing Windows ping output formats."""

    def test_windows_standard_format(self):
        """Test standard Windows ping output: time=12ms (no space)."""
        output = "Reply from 142.250.185.46: bytes=32 time=15ms TTL=117"
        assert parse_ping_latency_ms(output) == 15.0

    def test_windows_less_than_1ms(self):
        """Test Windows time<1ms format (fast localhost response)."""
        output = "Reply from 127.0.0.1: bytes=32 time<1ms TTL=128"
        # Interpreted as midpoint: 1/2 = 0.5
        assert parse_ping_latency_ms(output) == 0.5

    def test_windows_less_than_10ms(self):
        output = "Reply from 192.168.1.1: bytes=32 time<10ms TTL=64"
        assert parse_ping_latency_ms(output) == 5.0


class TestParsePingLatencyEdgeCases:
    """Test edge cases and error conditions."""

    def test_empty_string(self):
        assert parse_ping_latency_ms("") is None

    def test_none_input(self):
        assert parse_ping_latency_ms(None) is None

    def test_no_time_token(self):
        """Test output without 'time' keyword returns None."""
        assert parse_ping_latency_ms("Request timed out.") is None

    def test_destination_unreachable(self):
        output = """
PING 192.168.1.254 (192.168.1.254) 56(84) bytes of data.
From 192.168.1.1 icmp_seq=1 Destination Host Unreachable

--- 192.168.1.254 ping statistics ---
1 packets transmitted, 0 received, +1 errors, 100% packet loss
"""
        assert parse_ping_latency_ms(output) is None

    def test_partial_match_no_ms(self):
        """Test partial match without 'ms' suffix returns None."""
        assert parse_ping_latency_ms("time=12.3") is None

    def test_malformed_number_format(self):
        assert parse_ping_latency_ms("time=12.3.4 ms") is None

    def test_case_and_whitespace_variations(self):
        assert parse_ping_latency_ms("TIME = 15.5 MS") == 15.5
        assert parse_ping_latency_ms("time=\t12\tms") == 12.0

    def test_first_match_wins(self):
        assert parse_ping_latency_ms("time=10 ms, time=20 ms") == 10.0


class TestExtractPingError:
    """Test picking a failure description out of ping output."""

    def test_stderr_last_line_wins(self):
        stderr = "ping: warning: something\nping: nosuch.invalid: Name or service not known\n"
        assert extract_ping_error("", stderr) == "ping: nosuch.invalid: Name or service not known"

    def test_unreachable_line_in_stdout(self):
        stdout = (
            "PING 192.168.1.254 (192.168.1.254) 56(84) bytes of data.\n"
            "From 192.168.1.1 icmp_seq=1 Destination Host Unreachable\n"
        )
        assert extract_ping_error(stdout, "") == (
            "From 192.168.1.1 icmp_seq=1 Destination Host Unreachable"
        )

    def test_plain_loss_is_not_an_error(self):
        stdout = "1 packets transmitted, 0 received, 100% packet loss, time 0ms\n"
        assert extract_ping_error(stdout, "") is None


class TestBuildPingCommand:
    """Test platform-specific command building."""

    def test_build_command_windows(self):
        cmd = build_ping_command("google.com", 1000, "Windows")
        assert cmd == ["ping", "-n", "1", "-w", "1000", "google.com"]

    def test_build_command_linux(self):
        cmd = build_ping_command("google.com", 1000, "Linux")
        assert cmd == ["ping", "-c", "1", "-W", "1", "google.com"]

    def test_build_command_linux_fractional_timeout(self):
        """Test Linux command with fractional timeout (rounds up)."""
        cmd = build_ping_command("google.com", 1500, "Linux")
        assert cmd == ["ping", "-c", "1", "-W", "2", "google.com"]

    def test_build_command_macos(self):
        cmd = build_ping_command("google.com", 1000, "Darwin")
        assert cmd == ["ping", "-c", "1", "google.com"]


class TestSystemPingProberInitialization:
    """Test SystemPingProber construction and synchronous failures."""

    @pytest.fixture(autouse=True)
    def fake_ping_binary(self, monkeypatch):
        monkeypatch.setattr(prober_ping.shutil, "which", lambda name: "/bin/ping")

    def test_init_default_timeout(self):
        prober = SystemPingProber("8.8.8.8")
        assert prober.timeout_ms == 1000
        assert prober.timeout_seconds == 1.0

    def test_init_invalid_timeout(self):
        with pytest.raises(ValueError, match="timeout_ms must be positive"):
            SystemPingProber("8.8.8.8", timeout_ms=0)

    def test_missing_ping_command(self, monkeypatch):
        monkeypatch.setattr(prober_ping.shutil, "which", lambda name: None)
        with pytest.raises(OSError, match="ping command not found"):
            SystemPingProber("8.8.8.8")

    def test_start_empty_host_raises(self):
        prober = SystemPingProber("   ")
        with pytest.raises(ValueError, match="Host cannot be empty"):
            prober.start()

    def test_halt_when_idle_is_safe(self):
        prober = SystemPingProber("8.8.8.8")
        prober.halt(reset_sequence=True)
        assert prober._is_halted()

    def test_halted_before_run_spawns_nothing(self, monkeypatch):
        spawned = []
        monkeypatch.setattr(
            prober_ping.subprocess, "Popen", lambda *args, **kwargs: spawned.append(args)
        )
        prober = SystemPingProber("8.8.8.8")
        replies = []
        prober.observer = replies.append
        prober.error_observer = replies.append

        # The cycle timed out while the task was still waiting for a thread
        prober.halt()
        prober._run(build_ping_command("8.8.8.8", 1000, "Linux"))

        assert spawned == []
        assert replies == []

    def test_start_clears_previous_halt(self, monkeypatch):
        submitted = []
        monkeypatch.setattr(prober_ping, "submit", lambda task, pool=None: submitted.append(task))
        prober = SystemPingProber("8.8.8.8")

        prober.halt()
        prober.start()

        assert len(submitted) == 1
        assert not prober._is_halted()
