"""
Schema Exports

Request and response models of the HTTP API.
"""

from app.schemas.publish import PublishHeaders, PublishResponse

__all__ = [
    "PublishHeaders",
    "PublishResponse",
]
