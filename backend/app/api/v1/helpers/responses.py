"""
Shared OpenAPI response definitions for FastAPI route decorators.

Usage:
    from app.api.v1.helpers.responses import RESP_404

    @router.get("/template/{key}", responses={**RESP_404})
    async def get_template(...): ...
"""

RESP_400 = {400: {"description": "Bad request"}}
RESP_401 = {401: {"description": "Claim no longer valid"}}
RESP_404 = {404: {"description": "Resource not found"}}
RESP_413 = {413: {"description": "Payload too large"}}
RESP_422 = {422: {"description": "Checksum mismatch"}}
RESP_500 = {500: {"description": "Internal server error"}}
