"""Tests for the per-command Starlette handlers served by GenericCommandHandler."""

from __future__ import annotations

import io
import json

import pytest
from openpyxl import load_workbook
from starlette.testclient import TestClient

from parka.cmds.layers import DEFAULT_SLUG
from parka.cmds.middlewares import update_from_map, update_from_map_as_default
from parka.handlers import GenericCommandHandler
from parka.handlers.base import CommandHandler
from parka.handlers.sse import sse_event
from parka.server import Server

USERS = [{"id": 0, "name": "user-0"}, {"id": 1, "name": "user-1"}, {"id": 2, "name": "user-2"}]


def make_client(cmd, path="/cmd", **options) -> TestClient:
    server = Server()
    GenericCommandHandler(**options).serve_single_command(server, path, cmd)
    return TestClient(server.create_app())


@pytest.fixture
def users_client(users_cmd):
    return make_client(users_cmd, "/users")


@pytest.fixture
def greet_client(greet_cmd):
    return make_client(greet_cmd, "/greet")


# ============================================================================
# JSON
# ============================================================================


class TestJSON:
    def test_rows(self, users_client):
        resp = users_client.get("/users/data")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == USERS

    def test_query_parameters(self, users_client):
        resp = users_client.get("/users/data?limit=1&prefix=member")
        assert resp.json() == [{"id": 0, "name": "member-0"}]

    def test_output_is_always_json(self, users_client):
        resp = users_client.get("/users/data?output=csv")
        assert resp.json() == USERS

    def test_glazed_fields(self, users_client):
        resp = users_client.get("/users/data?fields=name&limit=1")
        assert resp.json() == [{"name": "user-0"}]

    def test_invalid_value(self, users_client):
        resp = users_client.get("/users/data?limit=many")
        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["error"]["code"] == "VALIDATION_INVALID_VALUE"
        assert data["error"]["details"]["parameter"] == "limit"

    def test_command_failure(self, users_client):
        resp = users_client.get("/users/data?fail-after=1")
        assert resp.status_code == 500
        data = resp.json()
        assert data["error"]["code"] == "INTERNAL_ERROR"
        assert "users backend went away" in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_writer_falls_back_to_text(self, greet_client):
        resp = greet_client.get("/greet/data?who=ann")
        assert resp.status_code == 200
        assert resp.text == "Hello, ann!\n"


# ============================================================================
# Text
# ============================================================================


class TestText:
    def test_writer(self, greet_client):
        resp = greet_client.get("/greet/text?who=ann&greeting=Hi")
        assert resp.headers["content-type"].startswith("text/plain")
        assert resp.text == "Hi, ann!\n"

    def test_missing_required(self, greet_client):
        resp = greet_client.get("/greet/text")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_MISSING_PARAMETER"

    def test_glaze_as_ascii_table(self, users_client):
        resp = users_client.get("/users/text?limit=1&output=json")
        assert resp.text.splitlines() == [
            "+----+--------+",
            "| id | name   |",
            "+----+--------+",
            "| 0  | user-0 |",
            "+----+--------+",
        ]


# ============================================================================
# Server-sent events
# ============================================================================


class TestSSE:
    def test_rows_as_events(self, users_client):
        resp = users_client.get("/users/streaming?limit=2")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"
        assert resp.text == sse_event(json.dumps(USERS[0])) + sse_event(json.dumps(USERS[1]))

    def test_failure_after_rows(self, users_client):
        resp = users_client.get("/users/streaming?fail-after=1")
        assert resp.status_code == 200
        events = resp.text.split("\n\n")
        assert events[0] == "data: " + json.dumps(USERS[0])
        assert events[1].startswith("event: error\ndata: ")
        error = json.loads(events[1].split("data: ", 1)[1])
        assert error == {"code": "COMMAND_FAILED", "message": "users backend went away"}

    def test_writer_output(self, greet_client):
        resp = greet_client.get("/greet/streaming?who=ann")
        assert resp.text == "data: Hello, ann!\ndata: \n\n"

    def test_parse_error_before_stream(self, users_client):
        resp = users_client.get("/users/streaming?limit=x")
        assert resp.status_code == 400

    def test_multiline_event(self):
        assert sse_event("a\nb", event="row") == "event: row\ndata: a\ndata: b\n\n"


# ============================================================================
# DataTables
# ============================================================================


class TestDataTables:
    def test_streamed_page(self, users_client):
        resp = users_client.get("/users/datatables")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        html = resp.text
        assert "<th>id</th><th>name</th>" in html
        assert "<td>user-2</td>" in html
        assert "<strong>users</strong>" in html
        assert 'href="/users/download/' in html

    def test_base_path_serves_datatables(self, users_client):
        assert "<td>user-0</td>" in users_client.get("/users").text

    def test_streamed_failure_renders_error(self, users_client):
        html = users_client.get("/users/datatables?fail-after=2").text
        assert "<td>user-1</td>" in html
        assert "<td>user-2</td>" not in html
        assert "users backend went away" in html

    def test_collected_page(self, users_cmd):
        client = make_client(users_cmd, "/users", stream=False)
        html = client.get("/users/datatables?limit=1").text
        assert "<td>user-0</td>" in html
        assert "<td>user-1</td>" not in html

    def test_collected_failure(self, users_cmd):
        client = make_client(users_cmd, "/users", stream=False)
        resp = client.get("/users/datatables?fail-after=1")
        assert resp.status_code == 200
        assert "<td>user-0</td>" in resp.text
        assert "users backend went away" in resp.text

    def test_no_rows(self, users_client):
        assert "No rows" in users_client.get("/users/datatables?limit=0").text

    def test_parameter_error_renders_page(self, users_client):
        resp = users_client.get("/users/datatables?limit=x")
        assert resp.status_code == 400
        assert "invalid value for parameter &#39;limit&#39;" in resp.text

    def test_writer_rejected(self, greet_client):
        resp = greet_client.get("/greet/datatables?who=ann")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "UNSUPPORTED_OUTPUT_FORMAT"

    def test_additional_data(self, users_cmd):
        client = make_client(users_cmd, "/users", additional_data={"owner": "data team"})
        assert "<dd>data team</dd>" in client.get("/users/datatables").text


# ============================================================================
# Declared layouts
# ============================================================================


class TestLayout:
    def test_sections_render(self, users_cmd):
        users_cmd.description().layout = [{"title": "Paging", "rows": [["limit", "prefix"]]}]
        html = make_client(users_cmd, "/users").get("/users/datatables").text
        assert "<legend>Paging</legend>" in html
        assert "<td>user-2</td>" in html

    @pytest.mark.parametrize(
        "path,options",
        [
            ("/users/datatables", {}),
            ("/users/datatables", {"stream": False}),
            ("/users/datatables?limit=x", {}),
            ("/users/form/", {}),
        ],
    )
    def test_unknown_parameter_is_json_error(self, users_cmd, path, options):
        users_cmd.description().layout = [{"rows": [["nope"]]}]
        resp = make_client(users_cmd, "/users", **options).get(path)
        assert resp.status_code == 500
        assert resp.headers["content-type"] == "application/json"
        error = resp.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "unknown parameter 'nope'" in error["message"]


def test_command_handler_is_abstract(users_cmd):
    with pytest.raises(TypeError):
        CommandHandler(users_cmd)


# ============================================================================
# Downloads
# ============================================================================


class TestDownload:
    def test_csv(self, users_client, temp_dir_settings):
        resp = users_client.get("/users/download/users.csv?limit=2")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert 'filename="users.csv"' in resp.headers["content-disposition"]
        assert resp.text.splitlines() == ["id,name", "0,user-0", "1,user-1"]
        assert list(temp_dir_settings.iterdir()) == []

    def test_json(self, users_client, temp_dir_settings):
        assert json.loads(users_client.get("/users/download/out.json").text) == USERS

    def test_excel(self, users_client, temp_dir_settings):
        resp = users_client.get("/users/download/out.xlsx?limit=1")
        ws = load_workbook(io.BytesIO(resp.content)).active
        assert [list(r) for r in ws.iter_rows(values_only=True)] == [["id", "name"], [0, "user-0"]]

    def test_unknown_extension(self, users_client, temp_dir_settings):
        resp = users_client.get("/users/download/out.exe")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "UNSUPPORTED_OUTPUT_FORMAT"

    def test_failure_removes_file(self, users_client, temp_dir_settings):
        resp = users_client.get("/users/download/out.csv?fail-after=0")
        assert resp.status_code == 500
        assert list(temp_dir_settings.iterdir()) == []

    def test_writer(self, greet_client):
        resp = greet_client.get("/greet/download/hello.txt?who=bob")
        assert resp.text == "Hello, bob!\n"
        assert 'filename="hello.txt"' in resp.headers["content-disposition"]


# ============================================================================
# Route middlewares
# ============================================================================


class TestRouteMiddlewares:
    def test_route_override_beats_query(self, users_cmd):
        client = make_client(users_cmd, "/users", middlewares=[update_from_map({DEFAULT_SLUG: {"limit": 1}})])
        assert len(client.get("/users/data?limit=3").json()) == 1

    def test_route_default_loses_to_query(self, users_cmd):
        client = make_client(
            users_cmd,
            "/users",
            middlewares=[update_from_map_as_default({DEFAULT_SLUG: {"limit": 1}})],
        )
        assert len(client.get("/users/data").json()) == 1
        assert len(client.get("/users/data?limit=2").json()) == 2
