"""
Workflows Repository

Authorization claims for CI runs. A claim is written out-of-band when a run
starts and deleted by the publish that consumes it. Deletion is the replay
boundary: once consumed, the token can never authorize another publish.
"""

import logging
from typing import Optional

from app.models.workflow import Claim
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class WorkflowRepository(BaseRepository[Claim]):
    """Single-use claim store keyed by the run's opaque token."""

    collection_name = "workflows"
    model_class = Claim

    async def resolve(self, token: str) -> Optional[Claim]:
        """Return the claim for ``token``, or None when unknown or consumed."""
        return await self.get_by_id(token)

    async def is_active(self, token: str) -> bool:
        return await self.exists({"_id": token})

    async def consume(self, token: str) -> None:
        """Delete the claim. Consuming an already consumed token is a no-op."""
        deleted = await self.delete(token)
        if deleted:
            logger.info(f"Consumed workflow claim {token[:8]}...")
        else:
            logger.info(f"Workflow claim {token[:8]}... was already consumed")

    async def register(self, token: str, claim: Claim) -> None:
        """Record a claim for a starting CI run."""
        await self.upsert({"_id": token}, claim.model_dump())
