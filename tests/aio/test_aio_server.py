"""Tests for the aiohttp.web backend."""

from __future__ import annotations

import io

import pytest
from aiohttp import test_utils
from openpyxl import load_workbook

from parka.aio import AioServer, CommandDirHandler, HandlerParameters, configure_aio_server, parse_query
from parka.aio.server import CORRELATION_HEADER
from parka.cmds.layers import DEFAULT_SLUG
from parka.cmds.settings import GLAZED_SLUG
from parka.core.exceptions import ConfigException
from parka.handlers.config import parse_config
from parka.render import LookupTemplateFromDirectory


async def start(server: AioServer) -> test_utils.TestClient:
    client = test_utils.TestClient(test_utils.TestServer(server.build_app()))
    await client.start_server()
    return client


@pytest.fixture
async def client(repository):
    server = AioServer()
    CommandDirHandler(repository, index_template_name="index-commands.tmpl.html").serve(server, "/cmds")
    client = await start(server)
    yield client
    await client.close()


# ============================================================================
# Command routes
# ============================================================================


class TestData:
    async def test_rows(self, client):
        resp = await client.get("/cmds/data/reports/users?limit=2")
        assert resp.status == 200
        assert await resp.json() == [{"id": 0, "name": "user-0"}, {"id": 1, "name": "user-1"}]

    async def test_output_forced_to_json(self, client):
        resp = await client.get("/cmds/data/reports/users?limit=1&output=csv")
        assert await resp.json() == [{"id": 0, "name": "user-0"}]

    async def test_writer_rejected(self, client):
        resp = await client.get("/cmds/data/misc/greet?who=a")
        assert resp.status == 400
        assert (await resp.json())["error"]["code"] == "UNSUPPORTED_OUTPUT_FORMAT"

    async def test_unknown_command(self, client):
        resp = await client.get("/cmds/data/nope")
        assert resp.status == 404
        assert (await resp.json())["error"]["code"] == "NOT_FOUND_COMMAND"

    async def test_ambiguous_command(self, client):
        resp = await client.get("/cmds/data/reports")
        assert resp.status == 404
        assert (await resp.json())["error"]["code"] == "AMBIGUOUS_COMMAND"

    async def test_invalid_value(self, client):
        resp = await client.get("/cmds/data/reports/users?limit=x")
        assert resp.status == 400
        assert (await resp.json())["error"]["code"] == "VALIDATION_INVALID_VALUE"

    async def test_command_failure(self, client):
        resp = await client.get("/cmds/data/reports/users?fail-after=0")
        assert resp.status == 500
        error = (await resp.json())["error"]
        assert error == {"code": "INTERNAL_ERROR", "message": "Command failed: users backend went away"}


class TestPages:
    async def test_datatables(self, client):
        resp = await client.get("/cmds/datatables/reports/users?limit=2")
        html = await resp.text()
        assert "<td>user-1</td>" in html
        assert "<td>user-2</td>" not in html
        assert 'href="/cmds/download/reports/users/' in html

    async def test_datatables_writer(self, client):
        html = await (await client.get("/cmds/datatables/misc/greet?who=ann")).text()
        assert '<pre class="writer-output">Hello, ann!\n</pre>' in html
        assert "<dt>audience</dt><dd>ann</dd>" in html
        assert 'href="/cmds/download/misc/greet/' in html

    async def test_datatables_missing_template(self, repository):
        server = AioServer()
        CommandDirHandler(repository, template_name="nope.tmpl.html").serve(server, "/cmds")
        client = await start(server)
        try:
            resp = await client.get("/cmds/datatables/reports/users")
            assert resp.status == 500
            assert (await resp.json())["error"]["code"] == "TEMPLATE_NOT_FOUND"
        finally:
            await client.close()

    async def test_table(self, client):
        html = await (await client.get("/cmds/table/reports/sales?limit=1&prefix=s")).text()
        assert "<td>s-0</td>" in html
        assert "<h1>sales</h1>" in html

    async def test_index(self, client):
        html = await (await client.get("/cmds/datatables/")).text()
        assert 'href="/cmds/datatables/reports/users"' in html
        assert 'href="/cmds/datatables/misc/greet"' in html

    async def test_directory_index(self, client):
        html = await (await client.get("/cmds/datatables/misc/")).text()
        assert 'href="/cmds/datatables/misc/greet"' in html
        assert "reports/users" not in html


class TestDownload:
    async def test_csv(self, client, temp_dir_settings):
        resp = await client.get("/cmds/download/reports/users/users.csv?limit=1")
        assert resp.status == 200
        assert resp.headers["Content-Disposition"] == 'attachment; filename="users.csv"'
        assert (await resp.read()).decode().splitlines() == ["id,name", "0,user-0"]
        assert list(temp_dir_settings.iterdir()) == []

    async def test_excel(self, client, temp_dir_settings):
        resp = await client.get("/cmds/download/reports/users/users.xlsx?limit=1")
        ws = load_workbook(io.BytesIO(await resp.read())).active
        assert [list(r) for r in ws.iter_rows(values_only=True)] == [["id", "name"], [0, "user-0"]]

    async def test_writer(self, client):
        resp = await client.get("/cmds/download/misc/greet/hello.txt?who=bo")
        assert await resp.text() == "Hello, bo!\n"

    async def test_unknown_extension(self, client, temp_dir_settings):
        resp = await client.get("/cmds/download/reports/users/users.exe")
        assert resp.status == 400
        assert (await resp.json())["error"]["code"] == "UNSUPPORTED_OUTPUT_FORMAT"


# ============================================================================
# Handler parameters
# ============================================================================


class TestHandlerParameters:
    def test_merge(self):
        base = HandlerParameters(layers={GLAZED_SLUG: {"indent": 2}}, flags={"limit": 1})
        base.merge(HandlerParameters(layers={GLAZED_SLUG: {"fields": ["id"]}}, flags={"limit": 5}))
        assert base.layers == {GLAZED_SLUG: {"indent": 2, "fields": ["id"]}}
        assert base.flags == {"limit": 5}

    def test_layer_map(self):
        params = HandlerParameters(flags={"greeting": "Hi"}, arguments={"who": "x"})
        assert params.layer_map() == {DEFAULT_SLUG: {"greeting": "Hi", "who": "x"}}
        assert not HandlerParameters()

    def test_defaults_and_overrides(self, users_cmd):
        defaults = HandlerParameters(flags={"limit": 1, "prefix": "d"})
        overrides = HandlerParameters(flags={"prefix": "o"})
        _, parsed = parse_query(users_cmd, {"limit": ["2"], "prefix": ["q"]}, defaults, overrides)
        values = parsed.get_default_parameters()
        assert values.get_value("limit") == 2
        assert values.get_value("prefix") == "o"

        _, parsed = parse_query(users_cmd, {}, defaults)
        assert parsed.get_default_parameters().get_value("limit") == 1

    async def test_route_defaults(self, repository):
        server = AioServer()
        handler = CommandDirHandler(repository).merge_defaults(HandlerParameters(flags={"limit": 1}))
        handler.merge_overrides(HandlerParameters(flags={"prefix": "fixed"}))
        handler.serve(server, "/cmds")
        client = await start(server)
        try:
            rows = await (await client.get("/cmds/data/reports/users?prefix=q")).json()
            assert rows == [{"id": 0, "name": "fixed-0"}]
        finally:
            await client.close()


# ============================================================================
# Server
# ============================================================================


class TestAioServer:
    async def test_bundled_index_page(self, client):
        resp = await client.get("/")
        assert resp.status == 200
        assert "This server exposes commands" in await resp.text()

    async def test_missing_page(self, client):
        resp = await client.get("/nowhere")
        assert resp.status == 404
        assert (await resp.json())["error"]["code"] == "NOT_FOUND_PAGE"

    async def test_correlation_header(self, client):
        resp = await client.get("/", headers={CORRELATION_HEADER: "cid-1"})
        assert resp.headers[CORRELATION_HEADER] == "cid-1"
        resp = await client.get("/")
        assert resp.headers[CORRELATION_HEADER]

    async def test_template_lookup_and_static(self, tmp_path):
        (tmp_path / "hello.md").write_text("# Hello {{ who }}")
        (tmp_path / "app.js").write_text("1;")
        server = AioServer(template_lookups=[LookupTemplateFromDirectory(tmp_path)], data={"who": "aio"})
        server.add_static_path("/static", tmp_path)
        client = await start(server)
        try:
            assert '<h1 id="hello-aio">Hello aio</h1>' in await (await client.get("/hello")).text()
            assert await (await client.get("/static/app.js")).text() == "1;"
        finally:
            await client.close()


class TestConfigure:
    def test_rejects_filters(self):
        config = parse_config(
            {
                "routes": [
                    {
                        "path": "/cmds",
                        "command_directory": {"repositories": ["a:b"], "whitelist": {"flags": ["limit"]}},
                    }
                ]
            }
        )
        with pytest.raises(ConfigException, match="whitelist and blacklist"):
            configure_aio_server(AioServer(), config)

    def test_rejects_single_commands(self):
        config = parse_config({"routes": [{"path": "/c", "command": {"command": "a:b"}}]})
        with pytest.raises(ConfigException, match="command routes need the starlette backend"):
            configure_aio_server(AioServer(), config)

    async def test_template_directory(self, tmp_path):
        (tmp_path / "about.html").write_text("<p>about</p>")
        config = parse_config({"routes": [{"path": "/", "template_directory": {"local_directory": str(tmp_path)}}]})
        server = AioServer()
        configure_aio_server(server, config)
        client = await start(server)
        try:
            assert await (await client.get("/about")).text() == "<p>about</p>"
        finally:
            await client.close()

