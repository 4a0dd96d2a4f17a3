"""Tests for the template and static file handlers."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from parka.handlers import StaticDirHandler, StaticFileHandler, TemplateDirHandler, TemplateHandler
from parka.server import Server


@pytest.fixture
def site(tmp_path):
    (tmp_path / "about.tmpl.md").write_text("# About\n\nServed at {{ request_path }}\n")
    (tmp_path / "plain.html").write_text("<p>{{ greeting }} from {{ request_path }}</p>")
    (tmp_path / "index.md").write_text("Welcome")
    (tmp_path / "guides").mkdir()
    (tmp_path / "guides" / "setup.md").write_text("## Setup")
    (tmp_path / "broken.html").write_text("{{ 1 / 0 }}")
    (tmp_path / "style.css").write_text("body {}")
    return tmp_path


def client_with(*routes) -> TestClient:
    server = Server()
    for path, endpoint in routes:
        server.add_route(path, endpoint)
    return TestClient(server.create_app())


class TestTemplateHandler:
    def test_markdown_file(self, site):
        client = client_with(("/about", TemplateHandler(site / "about.tmpl.md").handle))
        html = client.get("/about").text
        assert '<h1 id="about">About</h1>' in html
        assert "Served at /about" in html
        assert "<!DOCTYPE html>" in html

    def test_html_file(self, site):
        handler = TemplateHandler(site / "plain.html", data={"greeting": "hi"})
        client = client_with(("/plain", handler.handle))
        assert client.get("/plain").text == "<p>hi from /plain</p>"

    def test_reload(self, site):
        client = client_with(("/plain", TemplateHandler(site / "plain.html", always_reload=True).handle))
        (site / "plain.html").write_text("changed")
        assert client.get("/plain").text == "changed"

    def test_render_error(self, site):
        resp = client_with(("/broken", TemplateHandler(site / "broken.html").handle)).get("/broken")
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "INTERNAL_ERROR"


class TestTemplateDirHandler:
    @pytest.fixture
    def client(self, site):
        handler = TemplateDirHandler(site, data={"greeting": "hey"})
        return client_with(("/docs/", handler.handle), ("/docs/{path:path}", handler.handle))

    def test_index(self, client):
        resp = client.get("/docs/")
        assert resp.status_code == 200
        assert "<p>Welcome</p>" in resp.text

    def test_nested_markdown(self, client):
        assert '<h2 id="setup">Setup</h2>' in client.get("/docs/guides/setup").text

    def test_html_page_gets_data(self, client):
        assert client.get("/docs/plain").text == "<p>hey from /docs/plain</p>"

    def test_missing(self, client):
        resp = client.get("/docs/nothing")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND_PAGE"

    def test_non_template_files_are_hidden(self, client):
        assert client.get("/docs/style").status_code == 404


class TestStatic:
    def test_directory(self, site):
        server = Server()
        server.mount("/assets", StaticDirHandler(site).app())
        client = TestClient(server.create_app())
        assert client.get("/assets/style.css").text == "body {}"
        assert client.get("/assets/missing.css").status_code == 404

    def test_single_file(self, site):
        client = client_with(("/style.css", StaticFileHandler(site / "style.css").handle))
        resp = client.get("/style.css")
        assert resp.text == "body {}"
        assert resp.headers["content-type"].startswith("text/css")

    def test_missing_file(self, site):
        client = client_with(("/gone.css", StaticFileHandler(site / "gone.css").handle))
        assert client.get("/gone.css").status_code == 404
