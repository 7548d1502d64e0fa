"""
Cursors Repository

Per (owner, repo, ref) pointer to the most recent authoritative commit.

Updates are a compare-and-set ordered by CI run number: a candidate is
written only if no cursor exists or the stored run number is strictly lower.
The check-and-write is a conditional upsert on one document. When two first
publishes for a ref race, the losing insert raises DuplicateKeyError and is
retried once as a plain conditional update against the document that now
exists, so concurrent publishes cannot move the run number backwards.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from app.core.metrics import cursor_updates_total
from app.models.cursor import Cursor
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def cursor_key(owner: str, repo: str, ref: str) -> str:
    return f"{owner}:{repo}:{ref}"


class CursorRepository(BaseRepository[Cursor]):
    collection_name = "cursors"
    model_class = Cursor

    async def get(self, owner: str, repo: str, ref: str) -> Optional[Cursor]:
        return await self.get_by_id(cursor_key(owner, repo, ref))

    async def compare_and_set(self, owner: str, repo: str, ref: str, candidate: Cursor) -> bool:
        """
        Store ``candidate`` if it supersedes the current cursor.

        Args:
            owner: Repository owner
            repo: Repository name
            ref: Branch name or pull request number
            candidate: Cursor built from the publishing run

        Returns:
            True if the candidate was written, False if an equal or newer
            run already owns the cursor. A dropped write is not an error.
        """
        key = cursor_key(owner, repo, ref)
        query = {"_id": key, "run_number": {"$lt": candidate.run_number}}
        update = {
            "$set": {
                "owner": owner,
                "repo": repo,
                "ref": ref,
                "sha": candidate.sha,
                "run_number": candidate.run_number,
                "updated_at": datetime.now(timezone.utc),
            }
        }
        try:
            # Matches only an existing older cursor; inserts when the document is missing.
            await self.collection.find_one_and_update(query, update, upsert=True)
        except DuplicateKeyError:
            # The document exists now: stored by a newer run, or inserted by a
            # concurrent first publish for this ref that may be older.
            previous = await self.collection.find_one_and_update(query, update)
            if previous is None:
                cursor_updates_total.labels(result="dropped").inc()
                logger.info(
                    f"Cursor {key} not updated: run {candidate.run_number} is not newer than the stored run"
                )
                return False

        cursor_updates_total.labels(result="applied").inc()
        logger.info(f"Cursor {key} moved to {candidate.sha[:7]} (run {candidate.run_number})")
        return True

    async def find_by_ref(self, ref: str, limit: int = 20) -> List[Cursor]:
        """Cursors for ``ref`` across all repositories, most recently moved first."""
        cursor = self.collection.find({"ref": ref}).sort("updated_at", -1).limit(limit)
        return [self._to_model(doc) async for doc in cursor]
