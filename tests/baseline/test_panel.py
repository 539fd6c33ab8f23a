"""Tests for pterocli.engine.panel against an httpx.MockTransport."""

import json

import httpx
import pytest
import pytest_asyncio

from pterocli.engine.errors import PanelError
from pterocli.engine.panel import PanelClient, errorDetail

PANEL = "https://panel.example.com"
NODE = "https://node.example.com:8080"


class FakePanel:
    """Routes (method, path) -> response; records every request."""

    def __init__(self):
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, **kwargs):
        self.routes[(method, path)] = httpx.Response(status, **kwargs)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        got = self.routes.get((request.method, request.url.path))
        if got is None:
            return httpx.Response(404, json={"errors": [{"detail": "route not found"}]})

        return got

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def fake():
    return FakePanel()


@pytest_asyncio.fixture
async def panel(fake):
    client = PanelClient(PANEL + "/", "ptlc_secret", transport=httpx.MockTransport(fake))
    yield client
    await client.aclose()


def listing(*entries):
    return {"data": [{"object": "file_object", "attributes": e} for e in entries]}


class TestRequests:
    @pytest.mark.asyncio
    async def test_auth_and_accept_headers(self, panel, fake):
        fake.add("GET", "/api/client/", json={"data": []})
        await panel.listServers()

        assert fake.last.headers["Authorization"] == "Bearer ptlc_secret"
        assert fake.last.headers["Accept"] == "Application/vnd.pterodactyl.v1+json"
        assert str(fake.last.url).startswith(PANEL + "/api/client")

    @pytest.mark.asyncio
    async def test_list_servers(self, panel, fake):
        fake.add(
            "GET",
            "/api/client/",
            json={"data": [{"attributes": {"identifier": "1a2b3c4d5e6f", "name": "Survival"}}]},
        )
        servers = await panel.listServers()

        assert [(s.identifier, s.name, s.shortId) for s in servers] == [
            ("1a2b3c4d5e6f", "Survival", "1a2b3c4d")
        ]

    @pytest.mark.asyncio
    async def test_resources(self, panel, fake):
        fake.add(
            "GET",
            "/api/client/servers/abc/resources",
            json={
                "attributes": {
                    "current_state": "running",
                    "resources": {"uptime": 61000, "cpu_absolute": 12.5, "memory_bytes": 1024, "disk_bytes": 2048},
                    "limits": {"memory": 1024, "disk": 0},
                }
            },
        )
        res = await panel.resources("abc")

        assert res.state == "running"
        assert res.uptimeMs == 61000
        assert res.memoryLimitMb == 1024

    @pytest.mark.asyncio
    async def test_power_signal_body(self, panel, fake):
        fake.add("POST", "/api/client/servers/abc/power", status=204)
        await panel.power("abc", "restart")
        assert json.loads(fake.last.content) == {"signal": "restart"}

    @pytest.mark.asyncio
    async def test_unknown_power_signal_rejected(self, panel):
        with pytest.raises(AssertionError):
            await panel.power("abc", "explode")

    @pytest.mark.asyncio
    async def test_websocket_descriptor(self, panel, fake):
        fake.add(
            "GET",
            "/api/client/servers/abc/websocket",
            json={"data": {"token": "tok", "socket": "wss://node/api/servers/abc/ws"}},
        )
        assert await panel.websocket("abc") == {"token": "tok", "socket": "wss://node/api/servers/abc/ws"}


class TestErrors:
    @pytest.mark.asyncio
    async def test_panel_detail_is_surfaced(self, panel, fake):
        fake.add(
            "GET",
            "/api/client/servers/abc/websocket",
            status=409,
            json={"errors": [{"code": "ConflictHttpException", "detail": "Server is suspended"}]},
        )
        with pytest.raises(PanelError) as exc:
            await panel.websocket("abc")

        assert exc.value.detail == "Server is suspended"
        assert exc.value.status == 409

    @pytest.mark.asyncio
    async def test_non_json_error_falls_back_to_exception_text(self, panel, fake):
        fake.add("GET", "/api/client/servers/abc/resources", status=502, text="Bad Gateway")
        with pytest.raises(PanelError) as exc:
            await panel.resources("abc")

        assert "502" in exc.value.detail

    @pytest.mark.asyncio
    async def test_transport_failure_is_panel_error(self):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = PanelClient(PANEL, "k", transport=httpx.MockTransport(refuse))
        with pytest.raises(PanelError) as exc:
            await client.listServers()

        assert exc.value.detail == "Connection refused"
        assert exc.value.status is None
        await client.aclose()

    def test_error_detail_of_plain_exception(self):
        assert errorDetail(ValueError()) == "ValueError"


class TestFiles:
    @pytest.mark.asyncio
    async def test_list_directory_splits_dirs_and_files(self, panel, fake):
        fake.add(
            "GET",
            "/api/client/servers/abc/files/list",
            json=listing(
                {"name": "plugins", "is_file": False, "size": 4096},
                {"name": "server.properties", "is_file": True, "size": 1200},
                {"name": "world", "is_file": False},
            ),
        )
        got = await panel.listDirectory("abc", "/")

        assert [d.name for d in got.dirs] == ["plugins", "world"]
        assert [f.name for f in got.files] == ["server.properties"]
        assert got.names() == ["plugins", "world", "server.properties"]
        assert len(got) == 3
        assert fake.last.url.params["directory"] == "/"

    @pytest.mark.asyncio
    async def test_file_contents(self, panel, fake):
        fake.add("GET", "/api/client/servers/abc/files/contents", text="motd=hello\n")
        assert await panel.fileContents("abc", "/server.properties") == "motd=hello\n"
        assert fake.last.url.params["file"] == "/server.properties"

    @pytest.mark.asyncio
    async def test_download_streams_signed_url(self, panel, fake, tmp_path):
        fake.add(
            "GET",
            "/api/client/servers/abc/files/download",
            json={"attributes": {"url": f"{NODE}/download/file?token=xyz"}},
        )
        fake.add("GET", "/download/file", content=b"level-seed=42\n")

        dest = await panel.download("abc", "/server.properties", tmp_path / "server.properties")

        assert dest.read_bytes() == b"level-seed=42\n"
        assert fake.last.url.host == "node.example.com"

    @pytest.mark.asyncio
    async def test_upload_posts_multipart_files_field(self, panel, fake, tmp_path):
        fake.add(
            "GET",
            "/api/client/servers/abc/files/upload",
            json={"attributes": {"url": f"{NODE}/upload/file?token=xyz"}},
        )
        fake.add("POST", "/upload/file", status=200)

        local = tmp_path / "ops.json"
        local.write_text("[]")
        await panel.upload("abc", "/config", local)

        assert fake.requests[0].url.params["directory"] == "/config"
        body = fake.last.content
        assert b'name="files"' in body
        assert b'filename="ops.json"' in body

    @pytest.mark.asyncio
    async def test_rename_body(self, panel, fake):
        fake.add("PUT", "/api/client/servers/abc/files/rename", status=204)
        await panel.rename("abc", "/", [("/a/x.txt", "/b/x.txt")])
        assert json.loads(fake.last.content) == {"root": "/", "files": [{"from": "/a/x.txt", "to": "/b/x.txt"}]}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call, path, body",
        [
            (lambda p: p.createFolder("abc", "/", "logs2"), "create-folder", {"root": "/", "name": "logs2"}),
            (lambda p: p.delete("abc", "/", ["a.txt"]), "delete", {"root": "/", "files": ["a.txt"]}),
            (lambda p: p.compress("abc", "/x", ["a", "b"]), "compress", {"root": "/x", "files": ["a", "b"]}),
            (lambda p: p.decompress("abc", "/x", "a.zip"), "decompress", {"root": "/x", "file": "a.zip"}),
            (lambda p: p.copy("abc", "/x/a.txt"), "copy", {"location": "/x/a.txt"}),
        ],
    )
    async def test_file_action_bodies(self, panel, fake, call, path, body):
        fake.add("POST", f"/api/client/servers/abc/files/{path}", status=204)
        await call(panel)
        assert json.loads(fake.last.content) == body


class TestMalformedBodies:
    HTML = dict(text="<html>Please log in</html>", headers={"Content-Type": "text/html"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call, path",
        [
            (lambda p: p.listServers(), "/api/client/"),
            (lambda p: p.resources("abc"), "/api/client/servers/abc/resources"),
            (lambda p: p.websocket("abc"), "/api/client/servers/abc/websocket"),
            (lambda p: p.listDirectory("abc", "/"), "/api/client/servers/abc/files/list"),
            (lambda p: p.downloadUrl("abc", "/a.txt"), "/api/client/servers/abc/files/download"),
            (lambda p: p.uploadUrl("abc", "/"), "/api/client/servers/abc/files/upload"),
        ],
    )
    async def test_html_page_is_panel_error(self, panel, fake, call, path):
        fake.add("GET", path, **self.HTML)
        with pytest.raises(PanelError, match="Malformed panel response") as exc:
            await call(panel)

        assert exc.value.status == 200

    @pytest.mark.asyncio
    async def test_missing_data_key_is_panel_error(self, panel, fake):
        fake.add("GET", "/api/client/", json={"message": "x"})
        with pytest.raises(PanelError, match="Malformed panel response"):
            await panel.listServers()

    @pytest.mark.asyncio
    async def test_wrong_shape_attributes_is_panel_error(self, panel, fake):
        fake.add("GET", "/api/client/servers/abc/resources", json={"attributes": "running"})
        with pytest.raises(PanelError):
            await panel.resources("abc")

    @pytest.mark.asyncio
    async def test_listing_entry_without_name_is_panel_error(self, panel, fake):
        fake.add("GET", "/api/client/servers/abc/files/list", json=listing({"is_file": True}))
        with pytest.raises(PanelError):
            await panel.listDirectory("abc", "/")
