"""Tests for the rich dashboard."""

import asyncio
import io
from datetime import datetime, timedelta, timezone

import pytest
from rich.console import Console
from websockets.asyncio.client import connect

from tests.fixtures.upstream_stub import relay_url
from ws_relay.config import RelayConfig
from ws_relay.dashboard import (
    DashboardRenderer,
    _format_bandwidth,
    _format_bytes,
    _format_duration,
    _format_timestamp,
)
from ws_relay.relay import Relay


def render(relay: Relay) -> str:
    console = Console(file=io.StringIO(), width=250, color_system=None)
    renderer = DashboardRenderer(relay, refresh_rate=1.0, console=console)
    console.print(renderer._create_layout())
    return console.file.getvalue()


def test_formatting_helpers():
    assert _format_duration(42) == "42s"
    assert _format_duration(125) == "2m 5s"
    assert _format_duration(7260) == "2h 1m"
    assert _format_bytes(512) == "512 B"
    assert _format_bytes(2048) == "2.0 KB"
    assert _format_bandwidth(3 * 1024 * 1024) == "3.00 MB/s"
    assert _format_timestamp(None) == "never"
    assert _format_timestamp(datetime.now(timezone.utc) - timedelta(seconds=30)) == "30s ago"


@pytest.mark.asyncio
async def test_empty_dashboard():
    output = render(Relay(RelayConfig(upstream_url="ws://backend:2443/pwd")))

    assert "WebSocket Relay Dashboard" in output
    assert "ws://backend:2443/pwd" in output
    assert "No active sessions" in output


@pytest.mark.asyncio
async def test_dashboard_lists_sessions(relay: Relay):
    async with connect(relay_url(relay)) as client:
        await client.send("ping")
        await asyncio.wait_for(client.recv(), timeout=5)

        output = render(relay)

    assert "active" in output
    assert "No active sessions" not in output
    assert "127.0.0.1" in output
