"""Narrow protocols for the console session's collaborators.

These let the session controller and output coalescer be driven by
fakes in tests instead of a live terminal and a live socket.
"""
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pterocli.engine.connection import ConnectionEvent
    from pterocli.engine.session import SessionDescriptor


@runtime_checkable
class Terminal(Protocol):
    """Where coalesced console output is drawn, above the live input line."""

    @property
    def promptLine(self) -> str: ...
    def emit(self, text: str) -> None: ...
    def redrawPrompt(self) -> None: ...


@runtime_checkable
class Transport(Protocol):
    """One console socket: an event stream plus send/close."""

    @property
    def isOpen(self) -> bool: ...
    def events(self, descriptor: SessionDescriptor) -> AsyncIterator[ConnectionEvent]: ...
    async def send(self, frame: str) -> None: ...
    async def close(self) -> None: ...
