"""Async client for the Pterodactyl client API.

Every call is a single request/response. Failures are raised as
``PanelError`` carrying the panel's own explanation when it sent one.
"""
from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from typing import Any, Callable, Final, TypeVar

import httpx
from loguru import logger

from pterocli.engine.errors import PanelError
from pterocli.engine.resources import ServerResources

HTTP_TIMEOUT: Final = 15.0

POWER_SIGNALS: Final = ("start", "stop", "restart", "kill")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ServerSummary:
    identifier: str
    name: str

    @property
    def shortId(self) -> str:
        return self.identifier[:8]


@dataclass(frozen=True, slots=True)
class FileEntry:
    name: str
    isFile: bool
    size: int = 0
    modifiedAt: str = ""

    @classmethod
    def fromAttributes(cls, attrs: dict[str, Any]) -> FileEntry:
        return cls(
            name=attrs["name"],
            isFile=bool(attrs.get("is_file")),
            size=int(attrs.get("size") or 0),
            modifiedAt=attrs.get("modified_at") or "",
        )


@dataclass(slots=True)
class DirectoryListing:
    dirs: list[FileEntry] = field(default_factory=list)
    files: list[FileEntry] = field(default_factory=list)

    def names(self) -> list[str]:
        return [e.name for e in self.dirs] + [e.name for e in self.files]

    def __len__(self) -> int:
        return len(self.dirs) + len(self.files)


def errorDetail(e: Exception) -> str:
    """Extract the panel's ``errors[0].detail`` from a failed response if present."""
    if isinstance(e, httpx.HTTPStatusError):
        try:
            return e.response.json()["errors"][0]["detail"]
        except (ValueError, KeyError, IndexError, TypeError):
            pass

    return str(e) or e.__class__.__name__


def apiClient(panelUrl: str, apiKey: str, **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=f"{panelUrl.rstrip('/')}/api/client",
        headers={
            "Authorization": f"Bearer {apiKey}",
            "Accept": "Application/vnd.pterodactyl.v1+json",
            "Content-Type": "application/json",
        },
        timeout=HTTP_TIMEOUT,
        **kwargs,
    )


class PanelClient:
    """Client API wrapper for one panel and one API key.

    Parameters
    ----------
    panelUrl:
        Panel origin, e.g. ``https://panel.example.com``.
    apiKey:
        Client API key (``ptlc_...``).
    transport:
        Optional httpx transport; tests pass an ``httpx.MockTransport``.
        Also used for the signed upload/download URLs, which live on the
        node rather than the panel.
    """

    def __init__(self, panelUrl: str, apiKey: str, transport: httpx.AsyncBaseTransport | None = None):
        self.panelUrl = panelUrl.rstrip("/")
        self.transport = transport
        extra = dict(transport=transport) if transport else {}
        self.client = apiClient(self.panelUrl, apiKey, **extra)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            r = await self.client.request(method, url, **kwargs)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PanelError(errorDetail(e), e.response.status_code) from e
        except httpx.HTTPError as e:
            raise PanelError(errorDetail(e)) from e

        return r

    @staticmethod
    def decode(r: httpx.Response, build: Callable[[Any], T]) -> T:
        """Run ``build`` over the JSON body; a body of the wrong shape is a ``PanelError``.

        A reverse proxy in front of the panel may answer 200 with an HTML
        login or maintenance page.
        """
        try:
            return build(r.json())
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.debug("Malformed panel response from {}: {!r}", r.request.url, r.text[:200])
            raise PanelError(f"Malformed panel response: {e!r}", r.status_code) from e

    def files(self, serverId: str, action: str) -> str:
        return f"/servers/{serverId}/files/{action}"

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------

    async def listServers(self) -> list[ServerSummary]:
        r = await self.request("GET", "/")
        return self.decode(
            r,
            lambda body: [
                ServerSummary(s["attributes"]["identifier"], s["attributes"]["name"]) for s in body["data"]
            ],
        )

    async def resources(self, serverId: str) -> ServerResources:
        r = await self.request("GET", f"/servers/{serverId}/resources")
        return self.decode(r, lambda body: ServerResources.fromAttributes(body["attributes"]))

    async def power(self, serverId: str, signal: str) -> None:
        assert signal in POWER_SIGNALS, f"Unknown power signal: {signal}"
        await self.request("POST", f"/servers/{serverId}/power", json={"signal": signal})

    async def websocket(self, serverId: str) -> dict[str, str]:
        """Return ``{"token": ..., "socket": ...}`` for a console session."""
        r = await self.request("GET", f"/servers/{serverId}/websocket")
        return self.decode(r, lambda body: dict(body["data"]))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def listDirectory(self, serverId: str, directory: str) -> DirectoryListing:
        r = await self.request("GET", self.files(serverId, "list"), params={"directory": directory})

        listing = DirectoryListing()
        for entry in self.decode(r, lambda body: [FileEntry.fromAttributes(i["attributes"]) for i in body["data"]]):
            (listing.files if entry.isFile else listing.dirs).append(entry)

        return listing

    async def fileContents(self, serverId: str, path: str) -> str:
        r = await self.request("GET", self.files(serverId, "contents"), params={"file": path})
        return r.text

    async def downloadUrl(self, serverId: str, path: str) -> str:
        r = await self.request("GET", self.files(serverId, "download"), params={"file": path})
        return self.decode(r, lambda body: str(body["attributes"]["url"]))

    async def uploadUrl(self, serverId: str, directory: str) -> str:
        r = await self.request("GET", self.files(serverId, "upload"), params={"directory": directory})
        return self.decode(r, lambda body: str(body["attributes"]["url"]))

    async def download(self, serverId: str, path: str, dest: pathlib.Path) -> pathlib.Path:
        """Stream a remote file into ``dest``."""
        url = await self.downloadUrl(serverId, path)

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=None) as node:
                async with node.stream("GET", url) as r:
                    r.raise_for_status()
                    with open(dest, "wb") as f:
                        async for chunk in r.aiter_bytes():
                            f.write(chunk)
        except httpx.HTTPError as e:
            raise PanelError(errorDetail(e)) from e

        logger.debug("Downloaded {} -> {}", path, dest)
        return dest

    async def upload(self, serverId: str, directory: str, localPath: pathlib.Path) -> None:
        url = await self.uploadUrl(serverId, directory)

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=None) as node:
                with open(localPath, "rb") as f:
                    r = await node.post(url, files={"files": (localPath.name, f)})
                    r.raise_for_status()
        except httpx.HTTPError as e:
            raise PanelError(errorDetail(e)) from e

        logger.debug("Uploaded {} -> {}", localPath, directory)

    async def rename(self, serverId: str, root: str, moves: list[tuple[str, str]]) -> None:
        await self.request(
            "PUT",
            self.files(serverId, "rename"),
            json={"root": root, "files": [{"from": src, "to": dst} for src, dst in moves]},
        )

    async def createFolder(self, serverId: str, root: str, name: str) -> None:
        await self.request("POST", self.files(serverId, "create-folder"), json={"root": root, "name": name})

    async def delete(self, serverId: str, root: str, names: list[str]) -> None:
        await self.request("POST", self.files(serverId, "delete"), json={"root": root, "files": names})

    async def compress(self, serverId: str, root: str, names: list[str]) -> None:
        await self.request("POST", self.files(serverId, "compress"), json={"root": root, "files": names})

    async def decompress(self, serverId: str, root: str, name: str) -> None:
        await self.request("POST", self.files(serverId, "decompress"), json={"root": root, "file": name})

    async def copy(self, serverId: str, location: str) -> None:
        """Duplicate a file or directory in place (the panel names it ``copy_of_...``)."""
        await self.request("POST", self.files(serverId, "copy"), json={"location": location})
