"""Enumerations describing relay sessions."""

from enum import Enum


class SessionState(Enum):
    """Lifecycle of a downstream/upstream pair."""

    INIT = "init"  # downstream open, upstream connecting
    ACTIVE = "active"
    CLOSING = "closing"
    TERMINATED = "terminated"


class Direction(Enum):
    """Forwarding direction within a session."""

    DOWNSTREAM_TO_UPSTREAM = "downstream->upstream"
    UPSTREAM_TO_DOWNSTREAM = "upstream->downstream"

    @property
    def source(self) -> str:
        """Name of the leg messages are read from."""
        return "client" if self is Direction.DOWNSTREAM_TO_UPSTREAM else "upstream"

    @property
    def destination(self) -> str:
        """Name of the leg messages are written to."""
        return "upstream" if self is Direction.DOWNSTREAM_TO_UPSTREAM else "client"
