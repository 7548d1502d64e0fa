"""
Base Repository Pattern

Provides a generic, type-safe base class for the repositories.
"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel

# Type variable for the model class
T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Generic base repository providing common key-value operations.

    Type Parameters:
        T: The Pydantic model class this repository manages

    Usage:
        class CursorRepository(BaseRepository[Cursor]):
            collection_name = "cursors"
            model_class = Cursor
    """

    # Subclasses must define these
    collection_name: str
    model_class: Type[T]

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection: AsyncIOMotorCollection = db[self.collection_name]

    def _to_model(self, data: Optional[Dict[str, Any]]) -> Optional[T]:
        """Convert a raw document to a model instance."""
        if data is None:
            return None
        return self.model_class(**data)

    async def get_by_id(self, id: str) -> Optional[T]:
        """Get a document by ID and return as model instance."""
        data = await self.collection.find_one({"_id": id})
        return self._to_model(data)

    async def exists(self, query: Dict[str, Any]) -> bool:
        """Check if a document matching the query exists."""
        return await self.collection.find_one(query, {"_id": 1}) is not None

    async def upsert(self, query: Dict[str, Any], data: Dict[str, Any]) -> None:
        """Update or insert a document."""
        await self.collection.update_one(query, {"$set": data}, upsert=True)

    async def delete(self, id: str) -> bool:
        """Delete a document by ID."""
        result = await self.collection.delete_one({"_id": id})
        return result.deleted_count > 0
