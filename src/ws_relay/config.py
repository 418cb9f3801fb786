"""Relay configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_UPSTREAM_URL = "ws://0.0.0.0:2443/pwd"
DEFAULT_HOST = "0.0.0.0"  # noqa: S104
DEFAULT_PORT = 8787


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Settings shared by every session of a relay.

    Attributes:
        upstream_url: Fixed backend URI every session connects to
        host: Host to listen on for downstream clients
        port: Port to listen on for downstream clients (0 picks a free port)
        max_message_size: Maximum websocket message size in bytes on both legs
            (None disables the limit)
        open_timeout: Timeout in seconds for the upstream opening handshake
            (None waits forever)
        max_sessions: Maximum number of live sessions (0 means unlimited)
    """

    upstream_url: str = DEFAULT_UPSTREAM_URL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_message_size: int | None = None
    open_timeout: float | None = 10.0
    max_sessions: int = 0

    @property
    def listen_url(self) -> str:
        return f"ws://{self.host}:{self.port}"
