"""WebSocket relay server."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from http import HTTPStatus
from typing import TYPE_CHECKING

from websockets.asyncio.server import Server, ServerConnection, serve

from .config import RelayConfig
from .errors import NotUpgradeError
from .metrics import MetricsCollector
from .session import Session

if TYPE_CHECKING:
    from websockets.datastructures import Headers
    from websockets.http11 import Request, Response

logger = logging.getLogger(__name__)

SessionHandler = Callable[[Session], Awaitable[None] | None]


def _ensure_awaitable(result: Awaitable[None] | None) -> Awaitable[None]:
    if result is None:
        return asyncio.sleep(0)
    return result


def require_upgrade(headers: Headers) -> None:
    """Raise NotUpgradeError unless the request asks for a websocket upgrade.

    The header value is compared case-sensitively; repeated headers are joined
    the way HTTP folds them.
    """
    upgrade = ", ".join(headers.get_all("Upgrade"))
    if upgrade != "websocket":
        raise NotUpgradeError


class Relay:
    """Accepts websocket clients and pairs each one with a fresh upstream connection."""

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.config = config or RelayConfig()
        self.metrics = metrics or MetricsCollector()

        self._sessions: dict[str, Session] = {}
        self._on_session_start: list[SessionHandler] = []
        self._on_session_end: list[SessionHandler] = []

        self._server: Server | None = None
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Start listening for client connections."""
        if self._server is not None:
            raise RuntimeError("relay already running")

        logger.info(
            "Starting relay on %s -> %s", self.config.listen_url, self.config.upstream_url
        )
        self._stopped.clear()
        self._server = await serve(
            self._handle_connection,
            self.config.host,
            self.config.port,
            process_request=self.process_request,
            max_size=self.config.max_message_size,
        )

    async def stop(self) -> None:
        """Close every live session and stop accepting new connections."""
        if self._server is None:
            return

        logger.info("Stopping relay")

        # Close both legs of every session before the listener goes away
        await asyncio.gather(
            *(session.close() for session in self.sessions),
            return_exceptions=True,
        )

        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self._stopped.set()

    async def serve_forever(self) -> None:
        """Start the relay and block until stop() is called."""
        await self.start()
        await self._stopped.wait()

    @property
    def port(self) -> int:
        """Port the relay is bound to."""
        if self._server is None:
            raise RuntimeError("relay not running")
        return int(next(iter(self._server.sockets)).getsockname()[1])

    @property
    def sessions(self) -> list[Session]:
        """Return a snapshot of the live sessions."""
        return list(self._sessions.values())

    def on_session_start(self, handler: SessionHandler) -> None:
        """Attach a handler that runs when a session is created."""
        self._on_session_start.append(handler)

    def on_session_end(self, handler: SessionHandler) -> None:
        """Attach a handler that runs once both legs of a session are closed."""
        self._on_session_end.append(handler)

    def process_request(self, connection: ServerConnection, request: Request) -> Response | None:
        """Reject requests that must not start a session.

        Returning None lets the websocket handshake proceed with a
        101 Switching Protocols response.
        """
        try:
            require_upgrade(request.headers)
        except NotUpgradeError as exc:
            logger.debug("Rejecting %s: %s", request.path, exc)
            return connection.respond(HTTPStatus.UPGRADE_REQUIRED, str(exc))

        if 0 < self.config.max_sessions <= len(self._sessions):
            logger.warning("Rejecting %s: %d sessions live", request.path, len(self._sessions))
            return connection.respond(HTTPStatus.SERVICE_UNAVAILABLE, "Too many sessions")

        return None

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Run one session for the lifetime of an accepted client."""
        session = Session(websocket, self.config)
        self._sessions[session.id] = session
        self.metrics.add_session(session.metrics)
        logger.info("Client connected: %s", session.metrics.remote_address)
        try:
            for handler in self._on_session_start:
                await _ensure_awaitable(handler(session))
            await session.run()
        finally:
            self._sessions.pop(session.id, None)
            self.metrics.remove_session(session.id, failed=session.error is not None)
            for handler in self._on_session_end:
                await _ensure_awaitable(handler(session))
