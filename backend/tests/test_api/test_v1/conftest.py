"""Shared fixtures for API endpoint tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.main import app
from app.services.artifacts import ArtifactResolver
from app.services.publish import PublishService
from app.services.status_reporter import StatusReporter


@pytest.fixture
def publish_service(claim_store, cursor_ledger, packages_store, templates_store, installation):
    return PublishService(
        workflows=claim_store,
        cursors=cursor_ledger,
        packages=packages_store,
        templates=templates_store,
        reporter=StatusReporter(AsyncMock(return_value=installation)),
        whitelist_check=AsyncMock(return_value=False),
    )


@pytest.fixture
def client(publish_service, packages_store, templates_store, cursor_ledger):
    """TestClient wired to in-memory stores. Startup events (MongoDB) are not run."""
    app.dependency_overrides[deps.get_publish_service] = lambda: publish_service
    app.dependency_overrides[deps.get_templates_store] = lambda: templates_store
    app.dependency_overrides[deps.get_artifact_resolver] = lambda: ArtifactResolver(packages_store, cursor_ledger)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
