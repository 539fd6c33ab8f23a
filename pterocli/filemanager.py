"""Interactive remote file browser for one server.

Everything is relative to the server's root ``/``. Each menu action is a
single panel request (batch copy is two per item); a failed request is
logged and the browser returns to the current directory.
"""
from __future__ import annotations

import asyncio
import pathlib
import posixpath
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Any, Final

from loguru import logger
from questionary import Choice, Separator

from pterocli.engine.errors import PanelError
from pterocli.engine.panel import DirectoryListing, FileEntry
from pterocli.helpers import CB, Q, YN, fmtsize, joinRemote, parentRemote

ARCHIVE_SUFFIXES: Final = (".zip", ".tar.gz", ".tar", ".rar")


def isArchive(name: str) -> bool:
    return name.endswith(ARCHIVE_SUFFIXES)


def entryTitle(entry: FileEntry) -> str:
    if entry.isFile:
        return f"📄 {entry.name} ({fmtsize(entry.size)})"

    return f"📁 {entry.name}"


def browserChoices(cwd: str, listing: DirectoryListing) -> list[Choice | Separator]:
    """Directory menu: actions first, then folders, then files."""
    choices: list[Choice | Separator] = [
        Separator(),
        Choice("Back to main menu", ("exit", None)),
        Choice("Upload file", ("upload", None)),
        Choice("Create directory", ("mkdir", None)),
        Choice("Archive selected items", ("archive-selected", None)),
        Choice("Delete selected items", ("batch-delete", None)),
        Choice("Move selected items", ("batch-move", None)),
        Choice("Copy selected items", ("batch-copy", None)),
    ]

    if cwd != "/":
        choices.append(Choice(".. (go up)", ("up", None)))

    choices.append(Separator())

    choices.extend(Choice(entryTitle(d), ("dir", d)) for d in listing.dirs)
    choices.extend(Choice(entryTitle(f), ("file", f)) for f in listing.files)

    return choices


def dirActions() -> list[Choice | Separator]:
    return [
        Choice("Open", "open"),
        Choice("Copy", "copy"),
        Choice("Move", "move"),
        Choice("Archive", "archive"),
        Choice("Rename", "rename"),
        Choice("Delete", "delete"),
        Separator(),
        Choice("Cancel", "cancel"),
    ]


def fileActions(entry: FileEntry) -> list[Choice | Separator]:
    choices: list[Choice | Separator] = [
        Choice("Edit", "edit"),
        Choice("View content", "view"),
        Choice("Download", "download"),
        Choice("Copy", "copy"),
        Choice("Move", "move"),
    ]

    if isArchive(entry.name):
        choices.append(Choice("Extract", "extract"))

    choices += [
        Choice("Rename", "rename"),
        Choice("Delete", "delete"),
        Separator(),
        Choice("Cancel", "cancel"),
    ]

    return choices


@dataclass(slots=True)
class FileManager:
    app: Any
    serverId: str
    cwd: str = "/"

    @property
    def panel(self):
        return self.app.panel

    async def ask(self, q) -> Any:
        got = await self.app.qask([q])
        return None if got is None else got[q.name]

    async def run(self) -> None:
        while True:
            logger.info("Listing {}...", self.cwd)
            try:
                listing = await self.panel.listDirectory(self.serverId, self.cwd)
            except PanelError as e:
                logger.error("Failed to list directory: {}", e.detail)
                return

            selected = await self.ask(
                Q(f"File Manager: {self.cwd}", choices=browserChoices(self.cwd, listing))
            )

            if selected is None:
                return

            action, entry = selected
            if action == "exit":
                return

            try:
                await self.dispatch(action, entry, listing)
            except PanelError as e:
                logger.error("{} failed: {}", action.capitalize(), e.detail)

    async def dispatch(self, action: str, entry: FileEntry | None, listing: DirectoryListing) -> None:
        match action:
            case "up":
                self.cwd = parentRemote(self.cwd)
            case "dir":
                assert entry
                await self.dirMenu(entry)
            case "file":
                assert entry
                await self.fileMenu(entry)
            case "upload":
                await self.upload()
            case "mkdir":
                await self.createDirectory()
            case "archive-selected":
                await self.archiveSelected(listing)
            case "batch-delete":
                await self.batchDelete(listing)
            case "batch-move":
                await self.batchMove(listing)
            case "batch-copy":
                await self.batchCopy(listing)

    # ------------------------------------------------------------------
    # Per-entry menus
    # ------------------------------------------------------------------

    async def dirMenu(self, entry: FileEntry) -> None:
        action = await self.ask(Q(f"Action for directory {entry.name}:", choices=dirActions()))

        match action:
            case "open":
                self.cwd = joinRemote(self.cwd, entry.name)
            case "copy":
                await self.copyEntry(entry)
            case "move":
                await self.moveEntry(entry)
            case "archive":
                await self.archiveEntry(entry)
            case "rename":
                await self.renameEntry(entry)
            case "delete":
                await self.deleteEntry(joinRemote(self.cwd, entry.name))

    async def fileMenu(self, entry: FileEntry) -> None:
        path = joinRemote(self.cwd, entry.name)
        action = await self.ask(Q(f"Action for file {entry.name}:", choices=fileActions(entry)))

        match action:
            case "edit":
                await self.edit(path)
            case "view":
                await self.view(path)
            case "download":
                await self.download(path)
            case "copy":
                await self.copyEntry(entry)
            case "move":
                await self.moveEntry(entry)
            case "extract":
                await self.extract(entry)
            case "rename":
                await self.renameEntry(entry)
            case "delete":
                await self.deleteEntry(path)

    # ------------------------------------------------------------------
    # Single-item actions
    # ------------------------------------------------------------------

    async def view(self, path: str) -> None:
        logger.info("Fetching {}...", path)
        text = await self.panel.fileContents(self.serverId, path)
        logger.info("----- {} -----\n{}", path, text)
        logger.info("----- end of file -----")
        await self.ask(Q("Press Enter to continue..."))

    async def download(self, path: str, dest: pathlib.Path | None = None) -> pathlib.Path:
        dest = dest or pathlib.Path(posixpath.basename(path))
        logger.info("Downloading {}...", path)
        await self.panel.download(self.serverId, path, dest)
        logger.info("Saved {}", dest)
        return dest

    async def upload(self) -> None:
        given = await self.ask(Q("Local file to upload:"))
        if not given:
            return

        local = pathlib.Path(given.strip()).expanduser()
        if not local.is_file():
            logger.error("File not found: {}", local)
            return

        logger.info("Uploading {} to {}...", local.name, self.cwd)
        await self.panel.upload(self.serverId, self.cwd, local)
        logger.info("Uploaded {} to {}", local.name, self.cwd)

    async def edit(self, path: str) -> None:
        editor = self.app.config.editor
        tmpdir = pathlib.Path(tempfile.mkdtemp(prefix="pterocli-"))
        local = tmpdir / posixpath.basename(path)

        try:
            await self.panel.download(self.serverId, path, local)

            logger.info("Editing {} with {}...", path, editor)
            try:
                # editor inherits our tty
                await asyncio.to_thread(subprocess.run, [editor, str(local)])
            except OSError as e:
                logger.error("Could not start editor '{}': {}", editor, e)
                return

            if not await self.ask(YN("Upload changes?", default=True)):
                logger.warning("Edit discarded, nothing uploaded.")
                return

            logger.info("Uploading {}...", path)
            await self.panel.upload(self.serverId, parentRemote(path), local)
            logger.info("Saved {}", path)
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)

    async def renameEntry(self, entry: FileEntry) -> None:
        newName = await self.ask(Q(f"New name for {entry.name}:", value=entry.name))
        if not newName or newName == entry.name:
            return

        await self.panel.rename(self.serverId, self.cwd, [(entry.name, newName)])
        logger.info("Renamed {} -> {}", entry.name, newName)

    async def createDirectory(self) -> None:
        name = await self.ask(Q("New directory name:"))
        if not name:
            return

        await self.panel.createFolder(self.serverId, self.cwd, name)
        logger.info("Created directory {}", joinRemote(self.cwd, name))

    async def deleteEntry(self, path: str) -> None:
        if not await self.ask(YN(f"Delete {path}?", default=False)):
            logger.info("Delete cancelled.")
            return

        await self.panel.delete(self.serverId, "/", [path.removeprefix("/")])
        logger.info("Deleted {}", path)

    async def archiveEntry(self, entry: FileEntry) -> None:
        logger.info("Archiving {}...", entry.name)
        await self.panel.compress(self.serverId, self.cwd, [entry.name])
        logger.info("Archive created.")

    async def extract(self, entry: FileEntry) -> None:
        logger.info("Extracting {}...", entry.name)
        await self.panel.decompress(self.serverId, self.cwd, entry.name)
        logger.info("Extracted {}", entry.name)

    async def copyEntry(self, entry: FileEntry) -> None:
        if not await self.ask(YN(f"Copy {entry.name}?", default=True)):
            logger.info("Copy cancelled.")
            return

        await self.panel.copy(self.serverId, joinRemote(self.cwd, entry.name))
        logger.info("Copied {}", entry.name)

    async def moveEntry(self, entry: FileEntry) -> None:
        dest = await self.ask(Q(f"Move {entry.name} to directory:", value=self.cwd))
        if not dest:
            return

        await self.panel.rename(
            self.serverId, "/", [(joinRemote(self.cwd, entry.name), joinRemote(dest, entry.name))]
        )
        logger.info("Moved {} to {}", entry.name, dest)

    # ------------------------------------------------------------------
    # Multi-select actions
    # ------------------------------------------------------------------

    async def pick(self, msg: str, listing: DirectoryListing) -> list[str] | None:
        if not len(listing):
            logger.warning("No items in {}", self.cwd)
            return None

        choices = [Choice(entryTitle(e), e.name) for e in [*listing.dirs, *listing.files]]
        selected = await self.ask(CB(msg, choices=choices))
        if not selected:
            logger.warning("No items selected.")
            return None

        return selected

    async def archiveSelected(self, listing: DirectoryListing) -> None:
        if not (names := await self.pick("Select items to archive:", listing)):
            return

        logger.info("Archiving {} items...", len(names))
        await self.panel.compress(self.serverId, self.cwd, names)
        logger.info("Archive created.")

    async def batchDelete(self, listing: DirectoryListing) -> None:
        if not (names := await self.pick("Select items to delete:", listing)):
            return

        if not await self.ask(YN(f"Delete {len(names)} items?", default=False)):
            logger.info("Delete cancelled.")
            return

        await self.panel.delete(self.serverId, self.cwd, names)
        logger.info("Deleted {} items", len(names))

    async def batchMove(self, listing: DirectoryListing) -> None:
        if not (names := await self.pick("Select items to move:", listing)):
            return

        dest = await self.ask(Q("Destination directory:", value=self.cwd))
        if not dest:
            return

        moves = [(joinRemote(self.cwd, n), joinRemote(dest, n)) for n in names]
        await self.panel.rename(self.serverId, "/", moves)
        logger.info("Moved {} items to {}", len(names), dest)

    async def batchCopy(self, listing: DirectoryListing) -> tuple[int, int]:
        """Copy each item in place, then move the panel's ``copy_of_`` duplicate out.

        Returns (succeeded, failed)."""
        if not (names := await self.pick("Select items to copy:", listing)):
            return 0, 0

        dest = await self.ask(Q("Destination directory:", value=self.cwd))
        if not dest:
            return 0, 0

        good = bad = 0
        for name in names:
            src = joinRemote(self.cwd, f"copy_of_{name}")
            dst = joinRemote(dest, name)
            try:
                await self.panel.copy(self.serverId, joinRemote(self.cwd, name))
                await self.panel.rename(self.serverId, "/", [(src, dst)])
            except PanelError as e:
                logger.error("Failed to copy {} to {}: {}", name, dst, e.detail)
                bad += 1
            else:
                good += 1

        if bad:
            logger.error("{} items failed to copy.", bad)

        if good:
            logger.info("Copied {} items to {}", good, dest)

        return good, bad
