#!/usr/bin/env python3

original_print = print
import asyncio
import logging
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Final

import pandas as pd
import whenever
from loguru import logger
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from questionary import Choice, Separator

from pterocli.engine.config import (
    EDITORS,
    AppConfig,
    Credentials,
    loadConfig,
    loadCredentials,
    panelOrigin,
    saveConfig,
    saveCredentials,
    validateApiKey,
    validatePanelUrl,
)
from pterocli.engine.console import ConsoleSession
from pterocli.engine.errors import PanelError
from pterocli.engine.panel import POWER_SIGNALS, PanelClient, ServerSummary
from pterocli.engine.resources import STATE_STYLES, statusRows
from pterocli.engine.session import SessionResult
from pterocli.filemanager import FileManager
from pterocli.helpers import Q, printFrame

# seconds to let a power signal take effect before redrawing status
POWER_SETTLE: Final = 5


@dataclass
class PteroCmdlineApp:
    credentials: Credentials = field(default_factory=loadCredentials)
    config: AppConfig = field(default_factory=loadConfig)

    # created once credentials are known (see prepare())
    panel: PanelClient | None = None

    server: ServerSummary | None = None
    exiting: bool = False

    # result of the most recent console session
    lastSession: SessionResult | None = None

    def __post_init__(self) -> None:
        self.setupLogging()

    def setupLogging(self) -> None:
        # httpx and websockets log through stdlib logging; that goes to its own file
        # so connection chatter never lands on top of the prompt.
        now = whenever.ZonedDateTime.now(os.getenv("PTERO_TZ", "UTC"))
        LOGDIR = pathlib.Path(os.getenv("PTERO_LOGDIR", "runlogs")) / f"{now.year}" / f"{now.month:02}"
        LOGDIR.mkdir(exist_ok=True, parents=True)
        LOG_FILE_TEMPLATE = str(LOGDIR / f"pterocli-{now.py_datetime()}".replace(" ", "_"))

        logging.basicConfig(
            level=logging.INFO,
            filename=LOG_FILE_TEMPLATE + "-lib.log",
            format="%(asctime)s %(name)s %(message)s",
        )

        def asink(x):
            # don't use print_formatted_text() because it doesn't respect the
            # patch_stdout() context the console session runs inside. Without
            # patch_stdout() guarantees, async logging tears the prompt apart.
            original_print(x, end="")

        logger.remove()
        logger.add(asink, colorize=True, level="INFO")

        # TRACE because console commands are logged to TRACE; the operator
        # already saw them typed, so they only go to the files.
        logger.add(sink=LOG_FILE_TEMPLATE + "-pterocli.log", level="TRACE", colorize=False)
        logger.add(sink=LOG_FILE_TEMPLATE + "-pterocli-color.log", level="TRACE", colorize=True)

        logger.debug("Logging session with prefix: {}", LOG_FILE_TEMPLATE)

    async def qask(self, terms) -> dict[str, Any] | None:
        """Ask a questionary survey; None if the operator backed out of any question."""
        result = dict()
        for t in terms:
            if not t:
                continue

            try:
                got = await t.ask()
            except EOFError:
                # CTRL-D in an input box
                got = None

            # if user canceled, give up
            # See: https://questionary.readthedocs.io/en/stable/pages/advanced.html#keyboard-interrupts
            if got is None:
                return None

            result[t.name] = got

        return result

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def ensureCredentials(self) -> bool:
        """Prompt for whichever of panel URL / API key is missing, then persist both."""
        if self.credentials.complete:
            return True

        logger.warning("Panel URL or API key not configured.")

        got = await self.qask(
            [
                Q(
                    "url",
                    "Pterodactyl panel URL (e.g. https://panel.example.com):",
                    validate=validatePanelUrl,
                )
                if not self.credentials.panelUrl
                else None,
                Q("key", "Pterodactyl client API key:", validate=validateApiKey)
                if not self.credentials.apiKey
                else None,
            ]
        )

        if got is None:
            return False

        if url := got.get("url"):
            self.credentials.panelUrl = panelOrigin(url)

        if key := got.get("key"):
            self.credentials.apiKey = key.strip()

        saveCredentials(self.credentials)
        return True

    async def prepare(self) -> bool:
        if not await self.ensureCredentials():
            return False

        self.panel = PanelClient(self.credentials.panelUrl, self.credentials.apiKey)
        logger.info("Using panel: {}", self.credentials.panelUrl)
        return True

    # ------------------------------------------------------------------
    # Menus
    # ------------------------------------------------------------------

    async def selectServer(self) -> ServerSummary | str | None:
        """Returns a server, ``"settings"``, or None to quit."""
        assert self.panel

        logger.info("Fetching server list...")
        try:
            servers = await self.panel.listServers()
        except PanelError as e:
            logger.error("Failed to fetch servers: {}", e.detail)
            return None

        if not servers:
            logger.error("No servers found for this API key.")
            return None

        choices: list[Choice | Separator] = [Choice(f"{s.name} ({s.shortId})", s) for s in servers]
        choices += [Separator(), Choice("Settings", "settings"), Choice("Exit", "exit")]

        got = await self.qask([Q("Select a server", choices=choices)])
        if got is None or got["Select a server"] == "exit":
            return None

        selected = got["Select a server"]
        if isinstance(selected, ServerSummary):
            logger.info("Selected server: {}", selected.name)

        return selected

    async def displayServerStatus(self, server: ServerSummary) -> None:
        assert self.panel

        logger.info("Fetching server status...")
        try:
            res = await self.panel.resources(server.identifier)
        except PanelError as e:
            logger.error("Failed to fetch server status: {}", e.detail)
            return

        print_formatted_text(
            FormattedText(
                [
                    ("bold", f"{server.name} is "),
                    (STATE_STYLES.get(res.state, "ansigray"), res.state),
                ]
            )
        )

        df = pd.DataFrame(statusRows(res), columns=["Metric", "Value"])
        printFrame(df)

    async def selectAction(self, server: ServerSummary) -> str | None:
        q = Q(
            "action",
            f"What do you want to do with {server.name}?",
            choices=[
                Choice("Open console", "console"),
                Choice("File manager", "files"),
                Separator(),
                *[Choice(signal.capitalize(), signal) for signal in POWER_SIGNALS],
                Separator(),
                Choice("Change server", "change-server"),
                Choice("Exit", "exit"),
            ],
        )

        got = await self.qask([q])
        return None if got is None else got["action"]

    async def sendPowerAction(self, server: ServerSummary, signal: str) -> bool:
        assert self.panel

        logger.info("[{}] Sending {}...", server.name, signal)
        try:
            await self.panel.power(server.identifier, signal)
        except PanelError as e:
            logger.error("Power action failed: {}", e.detail)
            return False

        logger.info("Power signal sent. Waiting for status update...")
        await asyncio.sleep(POWER_SETTLE)
        return True

    async def connectToConsole(self, server: ServerSummary) -> SessionResult:
        assert self.panel

        with patch_stdout(raw=True):
            session = ConsoleSession.interactive(self.panel)
            result = await session.run(server.identifier)

        self.lastSession = result
        if result.ok:
            logger.info("[{}] Console closed.", server.name)
        else:
            logger.error("[{}] Console ended: {}", server.name, result.error)

        return result

    async def settingsMenu(self) -> None:
        got = await self.qask(
            [
                Q(
                    "editor",
                    f"Editor for the file manager (current: {self.config.editor}):",
                    choices=[Choice(e, e) for e in EDITORS],
                )
            ]
        )

        if got is None:
            return

        self.config.editor = got["editor"]
        saveConfig(self.config)
        logger.info("Editor set to {}", self.config.editor)

    async def serverMenu(self, server: ServerSummary) -> None:
        """Status + action loop for one server until the operator changes server or exits."""
        self.server = server

        while not self.exiting:
            await self.displayServerStatus(server)
            action = await self.selectAction(server)

            match action:
                case None | "exit":
                    self.exiting = True
                case "change-server":
                    return
                case "console":
                    await self.connectToConsole(server)
                case "files":
                    await FileManager(self, server.identifier).run()
                case signal if signal in POWER_SIGNALS:
                    await self.sendPowerAction(server, signal)

    async def runall(self) -> None:
        if not await self.prepare():
            logger.error("Panel URL and API key are required.")
            return

        try:
            while not self.exiting:
                selected = await self.selectServer()

                if selected is None:
                    break

                if selected == "settings":
                    await self.settingsMenu()
                    continue

                assert isinstance(selected, ServerSummary)
                await self.serverMenu(selected)
        except Exception:
            logger.exception("Fatal error, exiting")
        finally:
            self.exiting = True
            if self.panel:
                await self.panel.aclose()

        logger.info("Goodbye!")

    def stop(self) -> None:
        self.exiting = True

