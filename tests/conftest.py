"""Shared test fixtures for the pterocli test suite.

Fakes here stand in for the terminal, the console socket, the prompt, and
the event loop's timer so the console session can be driven headlessly
without a panel, a Wings daemon, or a tty.
"""

import asyncio
from typing import Any

import pytest

from pterocli.engine.connection import ConnectionEvent, EventKind
from pterocli.engine.errors import ConnectionClosed, UpstreamUnavailable
from pterocli.engine.session import SessionDescriptor


# ── Timer / loop ──


class FakeTimerHandle:
    """Stand-in for asyncio.TimerHandle."""

    def __init__(self, when: float, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Deterministic clock: timers fire only when the test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[FakeTimerHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self.timers.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self.timers if not (h.cancelled or h.fired)]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break

            handle = min(due, key=lambda h: h.when)
            self.now = handle.when
            handle.fired = True
            handle.callback(*handle.args)

        self.now = target


# ── Terminal ──


class FakeTerminal:
    """Records every write and prompt redraw."""

    def __init__(self, promptLine: str = ""):
        self.promptLine = promptLine
        self.emits: list[str] = []
        self.redraws = 0

    def emit(self, text: str) -> None:
        self.emits.append(text)

    def redrawPrompt(self) -> None:
        self.redraws += 1

    @property
    def output(self) -> str:
        return "".join(self.emits)


# ── Console socket ──


class FakeConnection:
    """Scripted console socket.

    Yields OPENED (or a TRANSPORT_ERROR when ``openError`` is set), then
    whatever the test pushes, ending at the first terminal event.
    """

    def __init__(self, openError: str | None = None):
        self.openError = openError
        self.queue: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        self.sent: list[str] = []
        self.descriptor: SessionDescriptor | None = None
        self.opened = False
        self.finished = False
        self.closeRequested = False
        self.closeCalls = 0

    @property
    def isOpen(self) -> bool:
        return self.opened and not (self.finished or self.closeRequested)

    async def events(self, descriptor):
        self.descriptor = descriptor

        if self.openError:
            self.finished = True
            yield ConnectionEvent(EventKind.TRANSPORT_ERROR, self.openError)
            return

        self.opened = True
        yield ConnectionEvent(EventKind.OPENED)

        while True:
            event = await self.queue.get()
            if event.terminal:
                self.finished = True

            yield event

            if event.terminal:
                return

    async def send(self, frame: str) -> None:
        if not self.isOpen:
            raise ConnectionClosed("not open")

        self.sent.append(frame)

    async def close(self) -> None:
        self.closeCalls += 1
        if not self.isOpen:
            return

        self.closeRequested = True
        self.queue.put_nowait(ConnectionEvent(EventKind.CLOSED_LOCALLY))

    # test helpers

    def push(self, raw: str | bytes) -> None:
        self.queue.put_nowait(ConnectionEvent(EventKind.FRAME, raw))

    def peerClose(self) -> None:
        self.queue.put_nowait(ConnectionEvent(EventKind.CLOSED_BY_PEER))

    def fail(self, why: str) -> None:
        self.queue.put_nowait(ConnectionEvent(EventKind.TRANSPORT_ERROR, why))


# ── Prompt ──


class FakePromptSession:
    """Hands out scripted lines from prompt_async().

    Once the script runs out it raises EOFError (``eof=True``) or waits
    forever like an idle operator.
    """

    def __init__(self, lines: list[str] | None = None, eof: bool = False):
        self.lines = list(lines or [])
        self.eof = eof
        self.prompts = 0

    async def prompt_async(self, *args, **kwargs) -> str:
        self.prompts += 1

        # let other tasks run between lines like a real operator would
        await asyncio.sleep(0)

        if self.lines:
            return self.lines.pop(0)

        if self.eof:
            raise EOFError

        await asyncio.Event().wait()
        raise AssertionError("unreachable")


# ── Broker ──


class FakeBroker:
    def __init__(self, descriptor: SessionDescriptor | None = None, error: str | None = None):
        self.descriptor = descriptor or SessionDescriptor("wss://node.example.com/api/servers/abc/ws", "tok-123")
        self.error = error
        self.calls: list[str] = []

    async def acquireDescriptor(self, serverId: str) -> SessionDescriptor:
        self.calls.append(serverId)
        if self.error:
            raise UpstreamUnavailable(self.error)

        return self.descriptor


async def waitUntil(cond, timeout: float = 2.0) -> None:
    """Yield to the loop until ``cond()`` holds."""
    async with asyncio.timeout(timeout):
        while not cond():
            await asyncio.sleep(0.001)


# ── Fixtures ──


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()


@pytest.fixture
def terminal() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def connection_factory():
    """Build a FakeConnection: ``connection_factory(openError="refused")``."""
    return FakeConnection


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def prompt_factory():
    """Build a FakePromptSession: ``prompt_factory(["say hi"], eof=True)``."""
    return FakePromptSession


@pytest.fixture
def eventually():
    return waitUntil


@pytest.fixture
def log_capture():
    """Collect loguru messages emitted during the test."""
    from loguru import logger

    records: list[Any] = []
    handler = logger.add(lambda m: records.append(m.record), level="TRACE")
    yield records
    logger.remove(handler)
