"""Tests for pingfleet.models.HostRecord invariants."""

import math

import pytest

from pingfleet.models import FAILURE_SENTINEL, HostRecord, latency_ms_from_duration


class TestHostRecord:
    """Test HostRecord dataclass behavior and invariants."""

    def test_new_record_is_empty(self):
        record = HostRecord(host="example.com")

        assert record.host == "example.com"
        assert record.history == []
        assert record.current_latency == FAILURE_SENTINEL
        assert record.last_error is None
        assert record.display_attribute is None

    def test_current_latency_mirrors_last_sample(self):
        record = HostRecord(host="example.com")

        record.append_sample(12, max_history=50)
        assert record.current_latency == 12

        record.append_sample(FAILURE_SENTINEL, max_history=50)
        assert record.current_latency == FAILURE_SENTINEL

        record.append_sample(7, max_history=50)
        assert record.current_latency == 7
        assert record.history == [12, 0, 7]

    def test_history_evicts_oldest_first(self):
        """Test FIFO eviction once max_history is exceeded."""
        record = HostRecord(host="example.com")

        for sample in [10, 20, 30, 40, 50]:
            record.append_sample(sample, max_history=3)
            assert len(record.history) <= 3

        assert record.history == [30, 40, 50]

    def test_truncate_keeps_newest(self):
        record = HostRecord(host="example.com", history=[1, 2, 3, 4, 5])
        record.truncate(2)
        assert record.history == [4, 5]

        record.truncate(10)
        assert record.history == [4, 5]

    def test_clear_resets_current_latency(self):
        record = HostRecord(host="example.com", history=[5, 6])
        record.clear()

        assert record.history == []
        assert record.current_latency == FAILURE_SENTINEL

    def test_copy_is_detached(self):
        """Test copies handed to subscribers do not share the history list."""
        record = HostRecord(host="example.com", history=[5], display_attribute="#007AFF")
        copied = record.copy()
        copied.history.append(99)

        assert record.history == [5]
        assert copied.display_attribute == "#007AFF"
        assert copied == HostRecord(
            host="example.com", history=[5, 99], display_attribute="#007AFF"
        )

    def test_is_failing(self):
        record = HostRecord(host="example.com")
        assert not record.is_failing

        record.append_sample(FAILURE_SENTINEL, max_history=5)
        record.last_error = "Timeout - no response from example.com"
        assert record.is_failing

        record.append_sample(8, max_history=5)
        record.last_error = None
        assert not record.is_failing


class TestLatencyRounding:
    """Test conversion of measured durations to whole milliseconds."""

    @pytest.mark.parametrize(
        "duration, expected",
        [
            (0.0123, 13),
            (0.010, 10),
            (0.03, 30),
            (0.0101, 11),
            (1.5, 1500),
        ],
    )
    def test_rounds_up(self, duration, expected):
        assert latency_ms_from_duration(duration) == expected

    @pytest.mark.parametrize("duration", [0.0, 0.0000001, 0.0004, 0.000999])
    def test_never_collides_with_sentinel(self, duration):
        """Test sub-millisecond replies are reported as at least 1 ms."""
        assert latency_ms_from_duration(duration) >= 1

    def test_matches_ceiling_of_milliseconds(self):
        for step in range(1, 200):
            duration = step * 0.00137
            assert latency_ms_from_duration(duration) == max(
                1, math.ceil(round(duration * 1000, 6))
            )
