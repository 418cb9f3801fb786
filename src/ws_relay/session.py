"""A single downstream/upstream pairing and its forwarding paths."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.frames import CloseCode
from websockets.protocol import State

from .errors import ErrorKind, UpstreamConnectError
from .metrics import SessionMetrics
from .types import Direction, SessionState

if TYPE_CHECKING:
    from websockets.asyncio.connection import Connection
    from websockets.asyncio.server import ServerConnection
    from websockets.typing import Data

    from .config import RelayConfig

logger = logging.getLogger(__name__)


def _format_address(address: object) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)


def _payload_size(message: Data) -> int:
    if isinstance(message, str):
        return len(message.encode("utf-8"))
    return len(message)


class Session:
    """Relays messages between one client and the fixed upstream.

    The session starts in ``INIT`` with the downstream leg already open. It
    becomes ``ACTIVE`` once the upstream leg opens, and from then on copies
    every message verbatim in both directions. The first close or error on
    either leg closes the other one as well.
    """

    def __init__(self, downstream: ServerConnection, config: RelayConfig) -> None:
        self.id = f"session_{id(downstream)}"
        self.downstream = downstream
        self.upstream: ClientConnection | None = None
        self.config = config

        self.state = SessionState.INIT
        # ErrorKind that ended the session, None for a clean close
        self.error: ErrorKind | None = None
        self._close_reason = ""

        self.metrics = SessionMetrics(
            session_id=self.id,
            remote_address=_format_address(downstream.remote_address),
            connected_at=datetime.now(timezone.utc),
        )

    async def run(self) -> None:
        """Open the upstream leg and forward until either leg closes."""
        upstream = await self._open_upstream()
        if upstream is None:
            await self.close()
            return

        if self.state is not SessionState.INIT or self.downstream.state is not State.OPEN:
            # Closed while the upstream handshake was in flight
            await upstream.close()
            await self.close()
            return

        self.upstream = upstream
        self.state = SessionState.ACTIVE
        logger.info("Connected to upstream %s", self.config.upstream_url)

        tasks = [
            asyncio.create_task(
                self._forward(self.downstream, self.upstream, Direction.DOWNSTREAM_TO_UPSTREAM)
            ),
            asyncio.create_task(
                self._forward(self.upstream, self.downstream, Direction.UPSTREAM_TO_DOWNSTREAM)
            ),
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await self.close()
            for task in tasks:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def close(self) -> None:
        """Close both legs. Closing an already closed session does nothing."""
        if self.state is SessionState.TERMINATED:
            return
        self.state = SessionState.CLOSING

        if self.error is None:
            code, reason = CloseCode.NORMAL_CLOSURE, ""
        else:
            code, reason = CloseCode.INTERNAL_ERROR, self._close_reason

        legs: list[Connection] = [self.downstream]
        if self.upstream is not None:
            legs.append(self.upstream)
        await asyncio.gather(*(leg.close(code, reason) for leg in legs))

        self.state = SessionState.TERMINATED

    async def _open_upstream(self) -> ClientConnection | None:
        """Connect upstream unless the client goes away first.

        Returns None when the connect failed or was abandoned because the
        downstream leg closed.
        """
        connecting = asyncio.create_task(self._connect_upstream())
        downstream_closed = asyncio.create_task(self.downstream.wait_closed())
        try:
            await asyncio.wait(
                [connecting, downstream_closed], return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            downstream_closed.cancel()
            if not connecting.done():
                connecting.cancel()
            await asyncio.wait([connecting])

        if connecting.cancelled():
            logger.info("Client WebSocket closed before upstream connected")
            return None
        try:
            return connecting.result()
        except UpstreamConnectError as exc:
            logger.warning("%s", exc)
            self._fail(exc.kind, "upstream unavailable")
            return None

    async def _connect_upstream(self) -> ClientConnection:
        started = time.perf_counter()
        try:
            upstream = await connect(
                self.config.upstream_url,
                open_timeout=self.config.open_timeout,
                max_size=self.config.max_message_size,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise UpstreamConnectError(self.config.upstream_url, exc) from exc
        self.metrics.record_handshake(time.perf_counter() - started)
        return upstream

    async def _forward(
        self, source: Connection, destination: Connection, direction: Direction
    ) -> None:
        """Copy messages from source to destination until source closes."""
        try:
            async for message in source:
                logger.debug("Message from %s: %r", direction.source, message)
                if destination.state is not State.OPEN:
                    self._drop(direction)
                    return
                try:
                    await destination.send(message)
                except ConnectionClosed:
                    self._drop(direction)
                    return
                self.metrics.record_message(direction, _payload_size(message))
        except ConnectionClosed as exc:
            if self.state is SessionState.ACTIVE:
                logger.warning("%s WebSocket error: %s", direction.source.capitalize(), exc)
                self._fail(ErrorKind.TRANSPORT_ERROR, "relay error")
        except Exception:
            logger.exception("Error relaying %s", direction.value)
            self._fail(ErrorKind.TRANSPORT_ERROR, "relay error")
        else:
            if self.state is SessionState.ACTIVE:
                logger.info("%s WebSocket closed", direction.source.capitalize())

    def _drop(self, direction: Direction) -> None:
        logger.debug("Dropping message, %s connection is closed", direction.destination)
        self.metrics.record_dropped(direction)

    def _fail(self, kind: ErrorKind, reason: str) -> None:
        self.metrics.record_error()
        if self.error is None:
            self.error = kind
            self._close_reason = reason
