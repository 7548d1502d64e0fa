"""
Shared test fixtures and configuration.

Environment variables are set BEFORE any app imports to prevent
accidental connections to real databases.
"""

import os
import sys

# Ensure the backend app is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Override settings before any app code imports the settings singleton
os.environ["MONGODB_URL"] = "mongodb://localhost:27017"
os.environ["DATABASE_NAME"] = "test_continuous_releases"
os.environ["GITHUB_APP_ID"] = "4242"
os.environ["GITHUB_APP_PRIVATE_KEY"] = "test-private-key"
os.environ["GITHUB_API_URL"] = "https://api.github.test"
os.environ["PUBLIC_BASE_URL"] = "https://pkg.example.com"
os.environ["WHITELIST_URL"] = ""

import pytest  # noqa: E402

from tests.mocks.github import FakeInstallation  # noqa: E402
from tests.mocks.publish import (  # noqa: E402
    InMemoryBlobStore,
    InMemoryClaimStore,
    InMemoryCursorLedger,
    make_claim,
)


@pytest.fixture
def claim():
    """Claim for a pull request run (ref is the PR number)."""
    return make_claim(ref="42")


@pytest.fixture
def branch_claim():
    """Claim for a branch run."""
    return make_claim(ref="main")


@pytest.fixture
def claim_store():
    return InMemoryClaimStore()


@pytest.fixture
def cursor_ledger():
    return InMemoryCursorLedger()


@pytest.fixture
def packages_store():
    return InMemoryBlobStore("packages")


@pytest.fixture
def templates_store():
    return InMemoryBlobStore("templates")


@pytest.fixture
def installation():
    return FakeInstallation(app_id=4242)


@pytest.fixture
def tarball():
    """Fake package archive and its npm shasum."""
    import hashlib

    data = b"\x1f\x8b\x08\x00fake-tarball-content" * 64
    return data, hashlib.sha1(data).hexdigest()
