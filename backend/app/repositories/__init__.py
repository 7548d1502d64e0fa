"""
Repository Pattern for Database Access

Provides a clean abstraction layer over MongoDB collections,
centralizing database operations and reducing code duplication.
"""

from app.repositories.base import BaseRepository
from app.repositories.cursors import CursorRepository
from app.repositories.workflows import WorkflowRepository

__all__ = [
    "BaseRepository",
    "CursorRepository",
    "WorkflowRepository",
]
