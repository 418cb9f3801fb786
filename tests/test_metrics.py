"""Tests for session metrics."""

from datetime import datetime, timezone

import pytest

from ws_relay.metrics import MetricsCollector, SessionMetrics
from ws_relay.types import Direction


def make_metrics(session_id: str = "session_1") -> SessionMetrics:
    return SessionMetrics(
        session_id=session_id,
        remote_address="127.0.0.1:5000",
        connected_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def clock(monkeypatch):
    """Controllable replacement for time.time()."""
    now = [1000.0]
    monkeypatch.setattr("ws_relay.metrics.time.time", lambda: now[0])
    return now


class TestSessionMetrics:
    """Test per-session counters."""

    def test_counts_per_direction(self):
        metrics = make_metrics()

        metrics.record_message(Direction.DOWNSTREAM_TO_UPSTREAM, 10)
        metrics.record_message(Direction.DOWNSTREAM_TO_UPSTREAM, 5)
        metrics.record_message(Direction.UPSTREAM_TO_DOWNSTREAM, 100)
        metrics.record_dropped(Direction.UPSTREAM_TO_DOWNSTREAM)

        upstream = metrics.directions[Direction.DOWNSTREAM_TO_UPSTREAM]
        downstream = metrics.directions[Direction.UPSTREAM_TO_DOWNSTREAM]
        assert (upstream.messages, upstream.byte_count, upstream.dropped) == (2, 15, 0)
        assert (downstream.messages, downstream.byte_count, downstream.dropped) == (1, 100, 1)
        assert metrics.total_messages == 3
        assert metrics.total_bytes == 115
        assert metrics.last_message_at is not None

    def test_rates_use_window(self, clock):
        metrics = make_metrics()

        for _ in range(3):
            metrics.record_message(Direction.DOWNSTREAM_TO_UPSTREAM, 100)
            clock[0] += 1.0

        # Samples at 1000, 1001, 1002; now is 1003
        assert metrics.get_message_rate() == pytest.approx(1.0)
        assert metrics.get_bandwidth() == pytest.approx(100.0)

        clock[0] += 60.0
        assert metrics.get_message_rate() == 0.0

    def test_rates_without_samples(self):
        metrics = make_metrics()
        assert metrics.get_message_rate() == 0.0
        assert metrics.get_bandwidth() == 0.0

    def test_errors_and_handshake(self):
        metrics = make_metrics()
        assert metrics.handshake_seconds is None

        metrics.record_handshake(0.25)
        metrics.record_error()
        metrics.record_error()

        assert metrics.handshake_seconds == 0.25
        assert metrics.errors == 2


class TestMetricsCollector:
    """Test the relay-wide collector."""

    def test_add_and_remove(self):
        collector = MetricsCollector()
        first = collector.add_session(make_metrics("session_1"))
        collector.add_session(make_metrics("session_2"))

        assert collector.get_session("session_1") is first
        assert collector.total_sessions == 2

        collector.remove_session("session_1")
        collector.remove_session("session_2", failed=True)
        collector.remove_session("unknown")

        assert collector.sessions == {}
        assert collector.total_sessions == 2
        assert collector.failed_sessions == 1

    def test_totals(self, clock):
        collector = MetricsCollector()
        for session_id in ("a", "b"):
            metrics = collector.add_session(make_metrics(session_id))
            metrics.record_message(Direction.UPSTREAM_TO_DOWNSTREAM, 50)
        clock[0] += 1.0

        assert collector.get_total_message_rate() == pytest.approx(2.0)
        assert collector.get_total_bandwidth() == pytest.approx(100.0)
        assert collector.get_uptime() >= 0.0
