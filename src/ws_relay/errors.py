"""Error taxonomy for the relay."""

from enum import Enum


class ErrorKind(Enum):
    """Reasons a request or session can fail."""

    NOT_UPGRADE = "not_upgrade"
    UPSTREAM_CONNECT_FAILURE = "upstream_connect_failure"
    TRANSPORT_ERROR = "transport_error"


class RelayError(Exception):
    """Base class for relay errors."""

    kind: ErrorKind


class NotUpgradeError(RelayError):
    """Raised when a request does not ask for a websocket upgrade."""

    kind = ErrorKind.NOT_UPGRADE

    def __init__(self, message: str = "Expected Upgrade: websocket") -> None:
        super().__init__(message)


class UpstreamConnectError(RelayError):
    """Raised when the upstream leg of a session cannot be opened."""

    kind = ErrorKind.UPSTREAM_CONNECT_FAILURE

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"Failed to connect to upstream {url}: {cause}")
        self.url = url
        self.cause = cause
