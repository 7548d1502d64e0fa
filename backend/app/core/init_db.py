import logging

import pymongo

from app.core.config import settings
from app.core.constants import PACKAGES_BUCKET, TEMPLATES_BUCKET
from app.db.mongodb import get_database

logger = logging.getLogger(__name__)


async def create_indexes(db):
    """Creates indexes for all collections to ensure performance."""
    logger.info("Creating database indexes...")

    # Claims: unused claims expire on their own
    await db["workflows"].create_index(
        "created_at", expireAfterSeconds=settings.CLAIM_TTL_HOURS * 3600
    )

    # Cursors are keyed by owner:repo:ref in _id; secondary lookup by repo
    await db["cursors"].create_index(
        [("owner", pymongo.ASCENDING), ("repo", pymongo.ASCENDING)]
    )
    # Compact downloads resolve a ref across repositories
    await db["cursors"].create_index(
        [("ref", pymongo.ASCENDING), ("updated_at", pymongo.DESCENDING)]
    )

    # GridFS file metadata used by artifact downloads
    await db[f"{PACKAGES_BUCKET}.files"].create_index(
        [("filename", pymongo.ASCENDING), ("uploadDate", pymongo.DESCENDING)]
    )
    await db[f"{TEMPLATES_BUCKET}.files"].create_index(
        [("filename", pymongo.ASCENDING), ("uploadDate", pymongo.DESCENDING)]
    )

    logger.info("Database indexes created successfully.")


async def init_db():
    db = await get_database()
    await create_indexes(db)
