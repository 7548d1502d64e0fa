"""Tests for package and template downloads."""

import asyncio

from app.models.cursor import Cursor
from app.services.publish import package_key

SHA = "abc1234def5678901234567890abcdef12345678"


def _store_package(packages_store, cursor_ledger, ref="main", package="pkg", data=b"tgz"):
    asyncio.run(packages_store.put_bytes(package_key("acme", "widgets", SHA, package), data, "application/tar+gzip"))
    asyncio.run(cursor_ledger.compare_and_set("acme", "widgets", ref, Cursor(sha=SHA, run_number=1)))


class TestPackageDownload:
    def test_by_sha(self, client, packages_store, cursor_ledger):
        _store_package(packages_store, cursor_ledger)

        response = client.get("/acme/widgets/pkg@abc1234")

        assert response.status_code == 200
        assert response.content == b"tgz"
        assert response.headers["content-type"] == "application/tar+gzip"

    def test_by_ref(self, client, packages_store, cursor_ledger):
        _store_package(packages_store, cursor_ledger, ref="42")

        assert client.get("/acme/widgets/pkg@42").content == b"tgz"

    def test_scoped_compact(self, client, packages_store, cursor_ledger):
        _store_package(packages_store, cursor_ledger, package="@acme/ui")

        response = client.get("/@acme/ui@main")

        assert response.status_code == 200
        assert 'filename="acme-ui.tgz"' in response.headers["content-disposition"]

    def test_unknown_package(self, client):
        assert client.get("/acme/widgets/pkg@abc1234").status_code == 404

    def test_not_an_artifact_path(self, client):
        assert client.get("/acme/widgets").status_code == 404


class TestTemplateDownload:
    def test_serves_bundle(self, client, templates_store):
        asyncio.run(templates_store.put_bytes("t-1", b"<html></html>", "text/html; charset=utf-8"))

        response = client.get("/template/t-1")

        assert response.status_code == 200
        assert response.text == "<html></html>"
        assert response.headers["content-type"].startswith("text/html")

    def test_missing(self, client):
        assert client.get("/template/missing").status_code == 404


class TestRoutingOrder:
    def test_api_routes_are_not_shadowed(self, client):
        assert client.get("/").json() == {"message": "Welcome to the Continuous Releases API"}
        assert client.get("/health/live").json() == {"status": "alive"}
