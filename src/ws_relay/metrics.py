"""Metrics collection for relay sessions."""

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .types import Direction


def _calculate_rate(samples: deque[tuple[float, int]], window_seconds: float) -> float:
    """Calculate rate from time-stamped samples within window."""
    if not samples:
        return 0.0

    now = time.time()
    cutoff = now - window_seconds
    valid_samples = [(ts, count) for ts, count in samples if ts >= cutoff]
    if not valid_samples:
        return 0.0

    total = sum(count for _, count in valid_samples)
    time_span = now - valid_samples[0][0]
    if time_span <= 0:
        return 0.0

    return total / time_span


@dataclass
class DirectionMetrics:
    """Traffic counters for one forwarding direction."""

    messages: int = 0
    byte_count: int = 0
    dropped: int = 0


@dataclass
class SessionMetrics:
    """Metrics for a single relay session."""

    session_id: str
    remote_address: str
    connected_at: datetime

    # Time spent opening the upstream leg, None until it succeeds
    handshake_seconds: float | None = None

    errors: int = 0
    last_message_at: datetime | None = None

    directions: dict[Direction, DirectionMetrics] = field(
        default_factory=lambda: {direction: DirectionMetrics() for direction in Direction}
    )

    # Rate tracking (samples stored for windowed calculations)
    _message_samples: deque[tuple[float, int]] = field(default_factory=lambda: deque(maxlen=60))
    _byte_samples: deque[tuple[float, int]] = field(default_factory=lambda: deque(maxlen=60))

    def record_message(self, direction: Direction, byte_count: int) -> None:
        """Record a message forwarded in the given direction."""
        now = time.time()
        counters = self.directions[direction]
        counters.messages += 1
        counters.byte_count += byte_count
        self.last_message_at = datetime.now(timezone.utc)
        self._message_samples.append((now, 1))
        self._byte_samples.append((now, byte_count))

    def record_dropped(self, direction: Direction) -> None:
        """Record a message dropped because its destination had closed."""
        self.directions[direction].dropped += 1

    def record_error(self) -> None:
        self.errors += 1

    def record_handshake(self, seconds: float) -> None:
        self.handshake_seconds = seconds

    @property
    def total_messages(self) -> int:
        """Total messages forwarded in both directions."""
        return sum(counters.messages for counters in self.directions.values())

    @property
    def total_bytes(self) -> int:
        """Total bytes forwarded in both directions."""
        return sum(counters.byte_count for counters in self.directions.values())

    def get_message_rate(self, window_seconds: float = 5.0) -> float:
        """Calculate messages per second over the last N seconds."""
        return _calculate_rate(self._message_samples, window_seconds)

    def get_bandwidth(self, window_seconds: float = 5.0) -> float:
        """Calculate bytes per second over the last N seconds."""
        return _calculate_rate(self._byte_samples, window_seconds)

    @property
    def connected_duration(self) -> float:
        """Get session duration in seconds."""
        return (datetime.now(timezone.utc) - self.connected_at).total_seconds()


class MetricsCollector:
    """Central metrics collector for the relay."""

    def __init__(self) -> None:
        self.sessions: dict[str, SessionMetrics] = {}
        self.total_sessions = 0
        self.failed_sessions = 0
        self._start_time = datetime.now(timezone.utc)

    def add_session(self, metrics: SessionMetrics) -> SessionMetrics:
        """Start tracking a session."""
        self.sessions[metrics.session_id] = metrics
        self.total_sessions += 1
        return metrics

    def remove_session(self, session_id: str, *, failed: bool = False) -> None:
        """Stop tracking a session."""
        self.sessions.pop(session_id, None)
        if failed:
            self.failed_sessions += 1

    def get_session(self, session_id: str) -> SessionMetrics | None:
        return self.sessions.get(session_id)

    def get_total_message_rate(self) -> float:
        """Get total message rate across all live sessions."""
        return sum(session.get_message_rate() for session in self.sessions.values())

    def get_total_bandwidth(self) -> float:
        """Get total bandwidth across all live sessions."""
        return sum(session.get_bandwidth() for session in self.sessions.values())

    def get_uptime(self) -> float:
        """Get relay uptime in seconds."""
        return (datetime.now(timezone.utc) - self._start_time).total_seconds()
