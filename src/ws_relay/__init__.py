"""WebSocket relay - forwards messages between clients and a fixed upstream server"""

from ws_relay.config import RelayConfig
from ws_relay.errors import ErrorKind, NotUpgradeError, RelayError, UpstreamConnectError
from ws_relay.relay import Relay
from ws_relay.session import Session
from ws_relay.types import Direction, SessionState

__all__ = [
    "Direction",
    "ErrorKind",
    "NotUpgradeError",
    "Relay",
    "RelayConfig",
    "RelayError",
    "Session",
    "SessionState",
    "UpstreamConnectError",
]
