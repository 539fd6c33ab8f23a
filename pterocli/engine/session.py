"""Per-session value types for the interactive console."""
from __future__ import annotations

import dataclasses
import enum


@dataclasses.dataclass(frozen=True, slots=True)
class SessionDescriptor:
    """One-time console endpoint plus its short-lived access token.

    Fetched once per session and only ever consumed by the socket open step.
    """

    endpointUri: str
    accessToken: str

    def __repr__(self) -> str:
        # tokens end up in log files otherwise
        return f"SessionDescriptor(endpointUri={self.endpointUri!r}, accessToken='***')"


class ConnectionState(enum.Enum):
    Connecting = "connecting"
    Authenticating = "authenticating"
    Active = "active"
    Closing = "closing"
    Closed = "closed"
    Errored = "errored"

    @property
    def terminal(self) -> bool:
        return self in {ConnectionState.Closed, ConnectionState.Errored}


@dataclasses.dataclass(frozen=True, slots=True)
class SessionResult:
    """How a console session ended.

    ``state`` is always ``Closed`` or ``Errored``; ``error`` carries the
    failure (``UpstreamUnavailable``, ``TransportError``, ...) for an
    ``Errored`` session.
    """

    state: ConnectionState
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.state is ConnectionState.Closed
