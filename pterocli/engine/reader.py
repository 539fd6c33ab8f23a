"""Operator input for the console: one editable prompt line on stdin."""
from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any, Final

from loguru import logger
from prompt_toolkit.formatted_text import HTML

# typed locally to leave the console; never sent to the server
EXIT_SIGIL: Final = "!exit"

DEFAULT_PROMPT: Final = HTML("<ansicyan>&gt; </ansicyan>")


def isExit(line: str) -> bool:
    return line.strip().lower() == EXIT_SIGIL


class InputLineReader:
    """Reads console commands until exit, end of input, or cancellation.

    Parameters
    ----------
    session:
        prompt_toolkit ``PromptSession`` (anything with ``prompt_async()``).
    onCommand:
        Awaited with each submitted, whitespace-trimmed line.
    onExit:
        Awaited when the operator types the exit sigil or input ends
        (Ctrl-D / Ctrl-C). Must be safe to call repeatedly.
    """

    def __init__(
        self,
        session: Any,
        onCommand: Callable[[str], Awaitable[Any]],
        onExit: Callable[[], Awaitable[Any]],
        prompt: Any = DEFAULT_PROMPT,
    ):
        self.session = session
        self.onCommand = onCommand
        self.onExit = onExit
        self.prompt = prompt
        self.task: asyncio.Task | None = None
        self.stopped = False

    async def handleLine(self, line: str) -> bool:
        """Dispatch one submitted line. Returns False when reading should stop."""
        command = line.strip()

        if isExit(command):
            logger.trace("console> {}", command)
            await self.onExit()
            return False

        await self.onCommand(command)
        return True

    async def run(self) -> None:
        while not self.stopped:
            try:
                line = await self.session.prompt_async(self.prompt)
            except (EOFError, KeyboardInterrupt):
                # Control-D / Control-C: the operator is done
                break

            if not await self.handleLine(line):
                break

        self.stopped = True
        await self.onExit()

    def start(self) -> asyncio.Task:
        assert self.task is None, "Reader already started"
        self.task = asyncio.create_task(self.run())
        return self.task

    async def stop(self) -> None:
        """Stop reading and restore the terminal. Safe to call at any time."""
        self.stopped = True

        if self.task and not self.task.done():
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task
