"""Interactive remote console session.

Wires together the descriptor fetch, the console socket, frame
classification, debounced output, and the operator's input line, and
owns the session's lifecycle::

    Connecting -> Authenticating -> Active -> Closing -> Closed
         \\______________\\____________\\_________\\____-> Errored

Whatever ends the session (operator exit, end of input, the server closing
the socket, a transport failure, or a failed descriptor fetch) resolves
the same completion future exactly once, so the caller's menu loop always
gets control back.
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Final

from loguru import logger
from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import InMemoryHistory

from pterocli.completer import ConsoleCompleter
from pterocli.engine.broker import TokenBroker
from pterocli.engine.coalescer import FLUSH_DELAY, OutputCoalescer
from pterocli.engine.connection import ConnectionEvent, DuplexConnection, EventKind
from pterocli.engine.errors import ConnectionClosed, TransportError, UpstreamUnavailable
from pterocli.engine.panel import PanelClient
from pterocli.engine.protocol import authFrame, classifyFrame, commandFrame
from pterocli.engine.protocols import Terminal, Transport
from pterocli.engine.reader import DEFAULT_PROMPT, EXIT_SIGIL, InputLineReader
from pterocli.engine.session import ConnectionState, SessionDescriptor, SessionResult
from pterocli.engine.terminal import PromptTerminal

S = ConnectionState

TRANSITIONS: Final = {
    S.Connecting: {S.Authenticating, S.Closing, S.Errored},
    S.Authenticating: {S.Active, S.Closing, S.Errored},
    S.Active: {S.Closing, S.Errored},
    S.Closing: {S.Closed, S.Errored},
    S.Closed: set(),
    S.Errored: set(),
}

# states where inbound console output is still wanted
RECEIVING: Final = {S.Authenticating, S.Active}


class ConsoleSession:
    """One console session against one server.

    Single use: construct, ``await run(serverId)``, discard.

    Parameters
    ----------
    broker:
        Source of the one-time socket URL + token.
    connection:
        The session's own socket; nothing else holds it.
    terminal:
        Output surface shared with the prompt.
    promptSession:
        Input source handed to the ``InputLineReader``.
    history:
        List that submitted commands are appended to (shared with the completer).
    """

    def __init__(
        self,
        broker: TokenBroker,
        connection: Transport,
        terminal: Terminal,
        promptSession: Any,
        delay: float = FLUSH_DELAY,
        prompt: Any = DEFAULT_PROMPT,
        history: list[str] | None = None,
    ):
        self.broker = broker
        self.connection: Transport | None = connection
        self.terminal = terminal
        self.coalescer = OutputCoalescer(terminal, delay)
        self.reader = InputLineReader(promptSession, self.submitCommand, self.requestClose, prompt)
        self.history = history if history is not None else []

        self.state = S.Connecting
        self.completed: asyncio.Future[SessionResult] | None = None
        self.pump: asyncio.Task | None = None

    @classmethod
    def interactive(cls, panel: PanelClient, origin: str | None = None) -> ConsoleSession:
        """Build a session bound to the real terminal and a real websocket."""
        history: list[str] = []
        prompt: PromptSession = PromptSession(
            history=InMemoryHistory(),
            auto_suggest=AutoSuggestFromHistory(),
            completer=ConsoleCompleter(history),
            complete_while_typing=False,
        )

        return cls(
            broker=TokenBroker(panel),
            connection=DuplexConnection(origin=origin or panel.panelUrl),
            terminal=PromptTerminal(prompt),
            promptSession=prompt,
            history=history,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def transition(self, new: ConnectionState) -> None:
        assert new in TRANSITIONS[self.state], f"Illegal console transition: {self.state} -> {new}"
        logger.debug("Console state: {} -> {}", self.state.value, new.value)
        self.state = new

    def finish(self, state: ConnectionState, error: Exception | None = None) -> None:
        """Enter a terminal state and resolve the session (first call wins)."""
        if self.state.terminal:
            return

        if state is S.Closed and self.state is not S.Closing:
            self.transition(S.Closing)

        self.transition(state)

        if self.completed and not self.completed.done():
            self.completed.set_result(SessionResult(state, error))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, serverId: str) -> SessionResult:
        self.completed = asyncio.get_running_loop().create_future()

        logger.info("Connecting to console...")
        try:
            descriptor = await self.broker.acquireDescriptor(serverId)
        except UpstreamUnavailable as e:
            logger.error("Console unavailable: {}", e)
            self.finish(S.Errored, e)
        else:
            self.pump = asyncio.create_task(self.consume(descriptor))

        try:
            return await self.completed
        finally:
            await self.teardown()

    async def consume(self, descriptor: SessionDescriptor) -> None:
        """Feed every connection event through the state machine."""
        assert self.connection

        try:
            async for event in self.connection.events(descriptor):
                await self.handleEvent(event, descriptor)
                if self.state.terminal:
                    break
        except Exception as e:
            logger.exception("Console event handling failed")
            self.finish(S.Errored, e)

        if not self.state.terminal:
            self.finish(S.Errored, TransportError("Console stream ended without closing"))

    async def handleEvent(self, event: ConnectionEvent, descriptor: SessionDescriptor) -> None:
        kind = event.kind

        if kind is EventKind.OPENED:
            await self.opened(descriptor)
        elif kind is EventKind.FRAME:
            self.received(event.data)  # type: ignore
        elif kind is EventKind.TRANSPORT_ERROR:
            err = TransportError(event.data)
            logger.error("Console connection error: {}", err)
            self.finish(S.Errored, err)
        else:
            logger.info("Console connection closed.")
            self.finish(S.Closed)

    async def opened(self, descriptor: SessionDescriptor) -> None:
        assert self.connection

        if self.state is S.Closing:
            # close() was requested while we were still connecting
            await self.connection.close()
            return

        # the daemon never acknowledges auth; we're live as soon as it's sent
        self.transition(S.Authenticating)
        try:
            await self.connection.send(authFrame(descriptor.accessToken))
        except ConnectionClosed as e:
            # closed under us; the terminal event is next in the stream
            logger.debug("Console closed before auth could be sent: {}", e)
            return

        self.transition(S.Active)

        logger.info("Connected to console!")
        logger.info("Waiting for logs...")
        logger.info("-" * 52)
        logger.info("Type '{}' to leave the console.", EXIT_SIGIL)

        self.reader.start()

    def received(self, raw: str | bytes) -> None:
        if self.state not in RECEIVING:
            return

        frame = classifyFrame(raw)
        if frame.printable:
            self.coalescer.append(frame.text)  # type: ignore

    async def submitCommand(self, text: str) -> bool:
        """Send one command line to the server. Returns True if it was sent."""
        if self.state is not S.Active or not self.connection:
            logger.warning("Not connected; command not sent: {}", text)
            return False

        logger.trace("console> {}", text)
        try:
            await self.connection.send(commandFrame(text))
        except ConnectionClosed as e:
            # the socket went away between the state check and the send;
            # its terminal event will end the session
            logger.debug("Command dropped, console socket closed: {}", e)
            return False

        self.history.append(text)
        return True

    async def requestClose(self) -> None:
        """Ask for the session to end. Idempotent."""
        if self.state in {S.Closing, S.Closed, S.Errored}:
            return

        self.transition(S.Closing)
        if self.connection:
            await self.connection.close()

    close = requestClose

    async def teardown(self) -> None:
        # no flush may fire once teardown starts
        self.coalescer.cancel()

        # cancelled from outside (Control-C in the menu loop, etc.)
        if not self.state.terminal:
            self.finish(S.Closed)

        await self.reader.stop()

        if self.connection:
            await self.connection.close()

        if self.pump and not self.pump.done():
            self.pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.pump

        # prompt is gone now; write out anything that arrived since the last flush
        self.coalescer.close()

        self.connection = None
        self.pump = None
