import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket

from app.core.config import settings

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None


db = Database()


async def get_database() -> AsyncIOMotorDatabase:
    return db.client[settings.DATABASE_NAME]


def get_bucket(database: AsyncIOMotorDatabase, bucket_name: str) -> AsyncIOMotorGridFSBucket:
    """GridFS bucket holding one artifact namespace (packages, templates)."""
    return AsyncIOMotorGridFSBucket(database, bucket_name=bucket_name)


async def connect_to_mongo():
    db.client = AsyncIOMotorClient(settings.MONGODB_URL)
    logger.info("Connected to MongoDB")


async def close_mongo_connection():
    if db.client is not None:
        db.client.close()
        logger.info("Closed MongoDB connection")
