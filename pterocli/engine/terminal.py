"""Terminal surface for drawing console output above the operator's prompt."""
from __future__ import annotations

import asyncio
import sys
from typing import Final, TextIO

from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal

# carriage return to column 0, then erase to end of line
ERASE_LINE: Final = "\r\x1b[K"


class PromptTerminal:
    """Draws output above a live prompt_toolkit prompt.

    While the prompt is running, prompt_toolkit's ``run_in_terminal()`` does
    the erase/redraw dance for us: it clears the rendered prompt, lets us
    write, then re-renders the prompt with the buffer contents intact, so
    partially typed input survives every flush. When no prompt is running
    (before the reader starts, after it stops) we erase the line ourselves.

    Output goes to the real stdout, not a ``patch_stdout()`` proxy, because
    the proxy does its own line buffering we don't want here.
    """

    def __init__(self, session: PromptSession, stream: TextIO | None = None) -> None:
        self.session = session
        self.stream: TextIO = stream or sys.__stdout__  # type: ignore

        # run_in_terminal() futures still writing
        self.inflight: set[asyncio.Future] = set()

    @property
    def promptLine(self) -> str:
        return self.session.default_buffer.text

    def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def emit(self, text: str) -> None:
        app = self.session.app
        if not app.is_running:
            self.write(ERASE_LINE + text)
            return

        fut = asyncio.ensure_future(run_in_terminal(lambda: self.write(text), in_executor=False))
        self.inflight.add(fut)
        fut.add_done_callback(self.inflight.discard)

    def redrawPrompt(self) -> None:
        app = self.session.app
        if app.is_running:
            app.invalidate()
