from functools import lru_cache

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.constants import PACKAGES_BUCKET, TEMPLATES_BUCKET
from app.db.mongodb import get_bucket, get_database
from app.repositories.cursors import CursorRepository
from app.repositories.workflows import WorkflowRepository
from app.services.artifacts import ArtifactResolver
from app.services.github import GitHubAppService
from app.services.publish import PublishService
from app.services.status_reporter import StatusReporter
from app.services.storage import BlobStore


@lru_cache
def get_github_app() -> GitHubAppService:
    return GitHubAppService(
        app_id=settings.GITHUB_APP_ID,
        private_key=settings.GITHUB_APP_PRIVATE_KEY,
        api_url=settings.GITHUB_API_URL,
    )


async def get_packages_store(db: AsyncIOMotorDatabase = Depends(get_database)) -> BlobStore:
    return BlobStore(get_bucket(db, PACKAGES_BUCKET), PACKAGES_BUCKET)


async def get_templates_store(db: AsyncIOMotorDatabase = Depends(get_database)) -> BlobStore:
    return BlobStore(get_bucket(db, TEMPLATES_BUCKET), TEMPLATES_BUCKET)


async def get_cursor_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> CursorRepository:
    return CursorRepository(db)


async def get_workflow_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> WorkflowRepository:
    return WorkflowRepository(db)


async def get_status_reporter(github: GitHubAppService = Depends(get_github_app)) -> StatusReporter:
    return StatusReporter(github.installation_for)


async def get_publish_service(
    workflows: WorkflowRepository = Depends(get_workflow_repository),
    cursors: CursorRepository = Depends(get_cursor_repository),
    packages: BlobStore = Depends(get_packages_store),
    templates: BlobStore = Depends(get_templates_store),
    reporter: StatusReporter = Depends(get_status_reporter),
) -> PublishService:
    return PublishService(
        workflows=workflows,
        cursors=cursors,
        packages=packages,
        templates=templates,
        reporter=reporter,
    )


async def get_artifact_resolver(
    packages: BlobStore = Depends(get_packages_store),
    cursors: CursorRepository = Depends(get_cursor_repository),
) -> ArtifactResolver:
    return ArtifactResolver(packages, cursors)
