"""Console websocket: one socket per session, exposed as an event stream."""
from __future__ import annotations

import asyncio
import dataclasses
import enum
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Final

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosedError, WebSocketException

from pterocli.engine.errors import ConnectionClosed
from pterocli.engine.session import SessionDescriptor

OPEN_TIMEOUT: Final = 10
CLOSE_TIMEOUT: Final = 2


class EventKind(enum.Enum):
    OPENED = "opened"
    FRAME = "frame"
    CLOSED_BY_PEER = "closed by peer"
    CLOSED_LOCALLY = "closed locally"
    TRANSPORT_ERROR = "transport error"


@dataclasses.dataclass(frozen=True, slots=True)
class ConnectionEvent:
    kind: EventKind

    # raw message for FRAME, failure description for TRANSPORT_ERROR
    data: str | bytes | None = None

    @property
    def terminal(self) -> bool:
        return self.kind in {
            EventKind.CLOSED_BY_PEER,
            EventKind.CLOSED_LOCALLY,
            EventKind.TRANSPORT_ERROR,
        }


def describe(e: BaseException) -> str:
    return str(e) or e.__class__.__name__


@dataclass(slots=True)
class DuplexConnection:
    """Owns exactly one console websocket.

    ``events()`` connects and then yields one OPENED, any number of FRAME
    events, and exactly one terminal event (CLOSED_BY_PEER, CLOSED_LOCALLY,
    or TRANSPORT_ERROR). A socket that fails to open yields only the
    TRANSPORT_ERROR. There is no reconnecting: once the stream ends, this
    connection is spent.
    """

    # the daemon rejects sockets whose Origin isn't the panel URL
    origin: str | None = None

    openTimeout: float = OPEN_TIMEOUT
    closeTimeout: float = CLOSE_TIMEOUT

    # replaceable for tests
    connector: Callable[..., Awaitable[Any]] = field(default=websockets.connect)

    ws: Any | None = None
    closeRequested: bool = False
    finished: bool = False

    @property
    def isOpen(self) -> bool:
        return self.ws is not None and not (self.finished or self.closeRequested)

    async def events(self, descriptor: SessionDescriptor) -> AsyncIterator[ConnectionEvent]:
        logger.debug("Opening console socket: {}", descriptor.endpointUri)

        try:
            self.ws = await self.connector(
                descriptor.endpointUri,
                origin=self.origin,
                open_timeout=self.openTimeout,
                close_timeout=self.closeTimeout,
                # console backlogs arrive as one big frame on connect
                max_size=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.finished = True
            yield ConnectionEvent(EventKind.TRANSPORT_ERROR, describe(e))
            return

        yield ConnectionEvent(EventKind.OPENED)

        try:
            async for msg in self.ws:
                yield ConnectionEvent(EventKind.FRAME, msg)
        except ConnectionClosedError as e:
            # an abnormal close we asked for is still our close
            if self.closeRequested:
                ending = ConnectionEvent(EventKind.CLOSED_LOCALLY)
            else:
                ending = ConnectionEvent(EventKind.TRANSPORT_ERROR, describe(e))
        except (OSError, WebSocketException) as e:
            ending = ConnectionEvent(EventKind.TRANSPORT_ERROR, describe(e))
        else:
            if self.closeRequested:
                ending = ConnectionEvent(EventKind.CLOSED_LOCALLY)
            else:
                ending = ConnectionEvent(EventKind.CLOSED_BY_PEER)
        finally:
            self.finished = True

        yield ending

    async def send(self, frame: str) -> None:
        if not self.isOpen:
            raise ConnectionClosed("console socket is not open")

        try:
            await self.ws.send(frame)  # type: ignore
        except websockets.ConnectionClosed as e:
            raise ConnectionClosed(describe(e)) from e

    async def close(self) -> None:
        """Close the socket. No-op when not open or already closing."""
        if not self.isOpen:
            return

        self.closeRequested = True
        await self.ws.close()  # type: ignore
