"""Rich-based dashboard for the websocket relay."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .types import Direction, SessionState

if TYPE_CHECKING:
    from .metrics import MetricsCollector
    from .relay import Relay

logger = logging.getLogger(__name__)

_STATE_STYLES = {
    SessionState.INIT: "yellow",
    SessionState.ACTIVE: "green",
    SessionState.CLOSING: "red",
    SessionState.TERMINATED: "dim",
}


def _format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        return f"{seconds // 60:.0f}m {seconds % 60:.0f}s"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours:.0f}h {minutes:.0f}m"


def _format_rate(rate: float) -> str:
    if rate < 0.01:
        return "0.00"
    if rate < 1:
        return f"{rate:.2f}"
    if rate < 10:
        return f"{rate:.1f}"
    return f"{rate:.0f}"


def _format_bandwidth(bytes_per_sec: float) -> str:
    if bytes_per_sec < 1024:
        return f"{bytes_per_sec:.0f} B/s"
    if bytes_per_sec < 1024 * 1024:
        return f"{bytes_per_sec / 1024:.1f} KB/s"
    return f"{bytes_per_sec / (1024 * 1024):.2f} MB/s"


def _format_bytes(byte_count: int) -> str:
    if byte_count < 1024:
        return f"{byte_count} B"
    if byte_count < 1024 * 1024:
        return f"{byte_count / 1024:.1f} KB"
    if byte_count < 1024 * 1024 * 1024:
        return f"{byte_count / (1024 * 1024):.1f} MB"
    return f"{byte_count / (1024 * 1024 * 1024):.2f} GB"


def _format_timestamp(dt: datetime | None) -> str:
    """Format timestamp to relative time string."""
    if dt is None:
        return "never"

    diff = datetime.now(timezone.utc) - dt
    if diff < timedelta(seconds=1):
        return "just now"
    if diff < timedelta(seconds=60):
        return f"{diff.seconds}s ago"
    if diff < timedelta(minutes=60):
        return f"{diff.seconds // 60}m ago"
    return dt.strftime("%H:%M:%S")


class DashboardRenderer:
    """Renders a live view of the relay's sessions using Rich."""

    def __init__(self, relay: Relay, refresh_rate: float, console: Console) -> None:
        self.relay = relay
        self.metrics: MetricsCollector = relay.metrics
        self.refresh_rate = refresh_rate
        self.console = console
        self._live: Live | None = None

    def _create_header_panel(self) -> Panel:
        """Create the header panel with global stats."""
        live_sessions = len(self.metrics.sessions)

        header_text = Text()
        header_text.append("WebSocket Relay Dashboard", style="bold cyan")
        header_text.append("\n\n")
        header_text.append("Upstream: ", style="bold")
        header_text.append(self.relay.config.upstream_url)
        header_text.append("  |  Uptime: ", style="bold")
        header_text.append(_format_duration(self.metrics.get_uptime()))
        header_text.append("\n")
        header_text.append("Live Sessions: ", style="bold")
        header_text.append(str(live_sessions), style="green" if live_sessions > 0 else "dim")
        header_text.append("  |  Served: ", style="bold")
        header_text.append(str(self.metrics.total_sessions))
        header_text.append("  |  Failed: ", style="bold")
        header_text.append(
            str(self.metrics.failed_sessions),
            style="red" if self.metrics.failed_sessions > 0 else "dim",
        )

        return Panel(header_text, border_style="blue")

    def _create_sessions_table(self) -> Table:
        table = Table(
            title="Sessions",
            title_style="bold magenta",
            show_header=True,
            header_style="bold",
            show_lines=False,
            expand=False,
        )

        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Remote Address", style="blue", no_wrap=True)
        table.add_column("State", no_wrap=True)
        table.add_column("Connected", style="green", no_wrap=True)
        table.add_column("Handshake", justify="right", style="dim")
        table.add_column("Msg/s", justify="right", style="yellow")
        table.add_column("Bandwidth", justify="right", style="yellow")
        table.add_column("Up Msgs", justify="right", style="white")
        table.add_column("Down Msgs", justify="right", style="white")
        table.add_column("Bytes", justify="right", style="yellow")
        table.add_column("Dropped", justify="center", style="red")
        table.add_column("Last Msg", style="dim", no_wrap=True)

        # Oldest sessions first
        sessions = sorted(self.relay.sessions, key=lambda s: s.metrics.connected_at)

        for session in sessions:
            metrics = session.metrics
            upstream = metrics.directions[Direction.DOWNSTREAM_TO_UPSTREAM]
            downstream = metrics.directions[Direction.UPSTREAM_TO_DOWNSTREAM]
            dropped = upstream.dropped + downstream.dropped
            handshake = (
                f"{metrics.handshake_seconds * 1000:.0f} ms"
                if metrics.handshake_seconds is not None
                else "-"
            )

            table.add_row(
                session.id.replace("session_", "")[:12],
                metrics.remote_address,
                Text(session.state.value, style=_STATE_STYLES[session.state]),
                _format_duration(metrics.connected_duration),
                handshake,
                _format_rate(metrics.get_message_rate()),
                _format_bandwidth(metrics.get_bandwidth()),
                str(upstream.messages),
                str(downstream.messages),
                _format_bytes(metrics.total_bytes),
                Text(str(dropped), style="red bold" if dropped > 0 else "dim"),
                _format_timestamp(metrics.last_message_at),
            )

        if not sessions:
            table.add_row(Text("No active sessions", style="dim italic"), *[""] * 11)

        return table

    def _create_layout(self) -> Panel:
        layout = Group(
            self._create_header_panel(),
            "",
            self._create_sessions_table(),
        )
        return Panel(layout, border_style="bright_blue", padding=(1, 2))

    def start_sync(self) -> None:
        """Start the live dashboard (synchronous - starts the Live display)."""
        self._live = Live(
            self._create_layout(),
            console=self.console,
            refresh_per_second=1 / self.refresh_rate,
            screen=False,
            auto_refresh=True,
        )
        self._live.start()
        self._live.update(self._create_layout())

    async def run_updates(self) -> None:
        """Run the dashboard update loop (call after start_sync)."""
        if self._live is None:
            return

        while True:
            try:
                self._live.update(self._create_layout())
                await asyncio.sleep(self.refresh_rate)
            except asyncio.CancelledError:
                break
            except (RuntimeError, ValueError, KeyError, IndexError) as e:
                logger.debug("Dashboard rendering error: %s", e)
                await asyncio.sleep(self.refresh_rate)

    async def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()
            self._live = None
