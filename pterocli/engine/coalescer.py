"""Debounced console output so server logs don't tear the input line.

Server output arrives in bursts of small chunks while the operator is typing.
Drawing each chunk as it lands means erasing and redrawing the prompt dozens
of times per second, and any chunk drawn mid-redraw garbles the line. Instead
we collect chunks and draw them in one write once the stream has been quiet
for ``FLUSH_DELAY`` seconds.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Final

from loguru import logger

from pterocli.engine.protocols import Terminal

# seconds of quiet after the most recent chunk before drawing
FLUSH_DELAY: Final = 0.050


@dataclass(slots=True)
class OutputCoalescer:
    """Buffers output chunks and flushes them on a trailing debounce.

    Every ``append()`` pushes the flush deadline back to ``delay`` seconds
    from now, so a burst of chunks closer together than ``delay`` becomes
    exactly one terminal write. There is never more than one pending timer.
    """

    terminal: Terminal
    delay: float = FLUSH_DELAY

    # defaults to the running loop on first append
    loop: asyncio.AbstractEventLoop | None = None

    # chunks in arrival order, not yet drawn
    buffer: list[str] = field(default_factory=list)

    # the one outstanding flush timer (if any)
    pending: asyncio.TimerHandle | None = None

    closed: bool = False

    # count of non-empty flushes (diagnostics only)
    flushes: int = 0

    def append(self, chunk: str) -> None:
        if self.closed:
            return

        self.buffer.append(chunk)
        self.rearm()

    def rearm(self) -> None:
        """Replace any pending flush with one ``delay`` seconds from now."""
        self.cancel()

        loop = self.loop or asyncio.get_running_loop()
        self.pending = loop.call_later(self.delay, self.flush)

    def cancel(self) -> None:
        if self.pending:
            self.pending.cancel()
            self.pending = None

    def drain(self) -> str | None:
        """Take everything buffered as one printable block (or None if empty)."""
        if not self.buffer:
            return None

        chunks, self.buffer = self.buffer, []
        text = "".join(chunks)

        # the prompt is redrawn after us, so never leave it sharing a line with output
        if not chunks[-1].endswith("\n"):
            text += "\n"

        return text

    def flush(self) -> None:
        self.pending = None

        text = self.drain()
        if text is None:
            # nothing arrived (a close raced the timer), just put the prompt back
            self.terminal.redrawPrompt()
            return

        self.flushes += 1
        self.terminal.emit(text)
        self.terminal.redrawPrompt()

    def close(self) -> None:
        """Stop the timer and write out whatever is still buffered.

        Safe to call more than once; appends after close are dropped.
        """
        if self.closed:
            return

        self.closed = True
        self.cancel()

        if (text := self.drain()) is not None:
            logger.trace("Writing {:,} bytes of console output buffered at close", len(text))
            self.terminal.emit(text)
