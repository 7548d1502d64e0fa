"""Tests for resolving published URLs back to package archives."""

import asyncio

import pytest

from app.models.cursor import Cursor
from app.services.artifacts import ArtifactRef, ArtifactResolver, parse_artifact_path
from app.services.publish import package_key
from tests.mocks.publish import InMemoryBlobStore, InMemoryCursorLedger

SHA_1 = "1111111aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
SHA_2 = "2222222bbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"


class TestParseArtifactPath:
    def test_qualified(self):
        assert parse_artifact_path("acme/widgets/pkg@abc1234") == ArtifactRef(
            package="pkg", tag="abc1234", owner="acme", repo="widgets"
        )

    def test_qualified_scoped(self):
        ref = parse_artifact_path("acme/widgets/@acme/ui@42")
        assert (ref.owner, ref.repo, ref.package, ref.tag) == ("acme", "widgets", "@acme/ui", "42")

    def test_compact(self):
        ref = parse_artifact_path("pkg@main")
        assert ref.compact is True
        assert (ref.package, ref.tag) == ("pkg", "main")

    def test_compact_scoped(self):
        ref = parse_artifact_path("@acme/ui@main")
        assert ref.compact is True
        assert ref.package == "@acme/ui"

    @pytest.mark.parametrize(
        "path",
        ["", "pkg", "pkg@", "@acme/ui", "acme/pkg@main", "acme/widgets/a/b@main", "a//b@main"],
    )
    def test_rejects(self, path):
        assert parse_artifact_path(path) is None


@pytest.fixture
def stores():
    packages = InMemoryBlobStore("packages")
    cursors = InMemoryCursorLedger()
    return packages, cursors, ArtifactResolver(packages, cursors)


def _publish(packages, cursors, sha, run_number, ref="main", owner="acme", repo="widgets", package="pkg"):
    asyncio.run(packages.put_bytes(package_key(owner, repo, sha, package), sha.encode()))
    asyncio.run(cursors.compare_and_set(owner, repo, ref, Cursor(sha=sha, run_number=run_number)))


class TestResolveQualified:
    def test_ref_follows_cursor(self, stores):
        packages, cursors, resolver = stores
        _publish(packages, cursors, SHA_1, 1)
        _publish(packages, cursors, SHA_2, 2)

        key = asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag="main", owner="acme", repo="widgets")))
        assert key == package_key("acme", "widgets", SHA_2, "pkg")

    def test_abbreviated_sha(self, stores):
        packages, cursors, resolver = stores
        _publish(packages, cursors, SHA_1, 1)
        _publish(packages, cursors, SHA_2, 2)

        key = asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag="1111111", owner="acme", repo="widgets")))
        assert key == package_key("acme", "widgets", SHA_1, "pkg")

    def test_full_sha(self, stores):
        packages, cursors, resolver = stores
        _publish(packages, cursors, SHA_1, 1)

        key = asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag=SHA_1, owner="acme", repo="widgets")))
        assert key == package_key("acme", "widgets", SHA_1, "pkg")

    def test_other_package_of_same_commit_does_not_match(self, stores):
        packages, cursors, resolver = stores
        _publish(packages, cursors, SHA_1, 1, package="pkg-a")

        key = asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag="1111111", owner="acme", repo="widgets")))
        assert key is None

    def test_unknown_ref(self, stores):
        _, _, resolver = stores
        assert asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag="dev", owner="acme", repo="widgets"))) is None


class TestResolveCompact:
    def test_ref(self, stores):
        packages, cursors, resolver = stores
        _publish(packages, cursors, SHA_1, 1, ref="42")

        key = asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag="42")))
        assert key == package_key("acme", "widgets", SHA_1, "pkg")

    def test_sha(self, stores):
        packages, cursors, resolver = stores
        _publish(packages, cursors, SHA_2, 1, owner="other", repo="thing")

        key = asyncio.run(resolver.resolve(ArtifactRef(package="pkg", tag="2222222")))
        assert key == package_key("other", "thing", SHA_2, "pkg")
