"""
API v1 Helper Functions

Shared helper functions extracted from endpoint modules for better
code organization and reusability.
"""

from app.api.v1.helpers.publish import parse_publish_form, read_publish_form

__all__ = [
    "parse_publish_form",
    "read_publish_form",
]
