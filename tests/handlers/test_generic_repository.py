"""Tests for serving a whole command repository through GenericCommandHandler."""

from __future__ import annotations

import json

import pytest
from starlette.testclient import TestClient

from parka.handlers import GenericCommandHandler
from parka.server import Server


def make_client(repository, **options) -> TestClient:
    server = Server()
    GenericCommandHandler(**options).serve_repository(server, "/cmds", repository)
    return TestClient(server.create_app())


@pytest.fixture
def client(repository):
    return make_client(repository, index_template_name="index-commands.tmpl.html")


class TestCommandRoutes:
    def test_data(self, client):
        resp = client.get("/cmds/data/reports/users?limit=1")
        assert resp.json() == [{"id": 0, "name": "user-0"}]

    def test_text(self, client):
        assert client.get("/cmds/text/misc/greet?who=a").text == "Hello, a!\n"

    def test_streaming(self, client):
        resp = client.get("/cmds/streaming/reports/sales?limit=1")
        assert resp.text == "data: " + json.dumps({"id": 0, "name": "user-0"}) + "\n\n"

    def test_unknown_command(self, client):
        resp = client.get("/cmds/data/nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND_COMMAND"

    def test_directory_is_ambiguous(self, client):
        resp = client.get("/cmds/data/reports")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "AMBIGUOUS_COMMAND"

    def test_datatables_command(self, client):
        html = client.get("/cmds/datatables/reports/users").text
        assert "<td>user-2</td>" in html
        assert 'href="/cmds/download/reports/users/' in html

    def test_download(self, client, temp_dir_settings):
        resp = client.get("/cmds/download/reports/users/x.json?limit=1")
        assert resp.status_code == 200
        assert json.loads(resp.text) == [{"id": 0, "name": "user-0"}]
        assert 'filename="x.json"' in resp.headers["content-disposition"]

    def test_download_unknown_command(self, client):
        resp = client.get("/cmds/download/reports/nope/x.json")
        assert resp.status_code == 404


class TestIndex:
    def test_root_lists_commands(self, client):
        resp = client.get("/cmds/")
        assert resp.status_code == 200
        html = resp.text
        assert 'href="/cmds/datatables/reports/users"' in html
        assert 'href="/cmds/datatables/misc/greet"' in html
        assert "Say hello" in html

    def test_datatables_root(self, client):
        html = client.get("/cmds/datatables/").text
        assert 'href="/cmds/datatables/reports/sales"' in html

    def test_datatables_directory(self, client):
        html = client.get("/cmds/datatables/reports/").text
        assert 'href="/cmds/datatables/reports/users"' in html
        assert "misc/greet" not in html

    def test_without_index_template(self, repository):
        client = make_client(repository)
        resp = client.get("/cmds/")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND_COMMAND"

    def test_missing_index_template(self, repository):
        client = make_client(repository, index_template_name="nope.tmpl.html")
        resp = client.get("/cmds/")
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "TEMPLATE_NOT_FOUND"
