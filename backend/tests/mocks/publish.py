"""In-memory stand-ins for the claim store, cursor ledger and blob stores."""

import hashlib
import itertools
import re
from typing import Dict, List, Optional, Set

from app.core.constants import UPLOAD_CHUNK_SIZE
from app.core.exceptions import ChecksumMismatchError
from app.models.cursor import Cursor
from app.models.workflow import Claim
from app.services.storage import BytesSource, StoredBlob

DEFAULT_SHA = "abc1234def5678901234567890abcdef12345678"


def make_claim(owner="acme", repo="widgets", ref="42", sha=DEFAULT_SHA, **kwargs):
    """Create a Claim with sensible defaults for testing."""
    return Claim(owner=owner, repo=repo, ref=ref, sha=sha, **kwargs)


class FakeGridOut:
    def __init__(self, data: bytes, content_type: Optional[str]):
        self._data = data
        self._offset = 0
        self.metadata = {"contentType": content_type}

    async def read(self) -> bytes:
        return self._data

    async def readchunk(self) -> bytes:
        chunk = self._data[self._offset : self._offset + UPLOAD_CHUNK_SIZE]
        self._offset += len(chunk)
        return chunk


class InMemoryBlobStore:
    """Dict-backed BlobStore with the same checksum semantics."""

    def __init__(self, name: str):
        self.name = name
        self.blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, Optional[str]] = {}
        self.fail_keys: Set[str] = set()
        self._order: Dict[str, int] = {}
        self._seq = itertools.count()

    async def put(self, key, source, checksum=None, content_type=None) -> StoredBlob:
        chunks = []
        while True:
            chunk = await source.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        data = b"".join(chunks)

        if key in self.fail_keys:
            raise ConnectionError(f"storage unavailable for {key}")
        actual = hashlib.sha1(data).hexdigest()
        if checksum and actual != checksum.lower():
            raise ChecksumMismatchError(key, checksum, actual)

        self.blobs[key] = data
        self.content_types[key] = content_type
        self._order[key] = next(self._seq)
        return StoredBlob(key=key, file_id=key, size=len(data), sha1=actual)

    async def put_bytes(self, key, data, content_type=None) -> StoredBlob:
        return await self.put(key, BytesSource(data), content_type=content_type)

    async def open(self, key) -> Optional[FakeGridOut]:
        if key not in self.blobs:
            return None
        return FakeGridOut(self.blobs[key], self.content_types.get(key))

    async def get(self, key) -> Optional[bytes]:
        return self.blobs.get(key)

    async def has(self, key) -> bool:
        return key in self.blobs

    async def remove(self, key) -> int:
        return 1 if self.blobs.pop(key, None) is not None else 0

    async def find_matching(self, pattern, limit=1) -> List[str]:
        keys = [k for k in self.blobs if re.search(pattern, k)]
        keys.sort(key=lambda k: self._order[k], reverse=True)
        return keys[:limit]

    async def find_by_prefix(self, prefix, limit=1) -> List[str]:
        return await self.find_matching(f"^{re.escape(prefix)}", limit=limit)


class InMemoryClaimStore:
    def __init__(self):
        self.claims: Dict[str, Claim] = {}
        # Simulates another publish consuming the claim between the two checks
        self.consume_before_recheck = False
        self.consumed: List[str] = []

    async def register(self, token: str, claim: Claim) -> None:
        self.claims[token] = claim

    async def resolve(self, token: str) -> Optional[Claim]:
        return self.claims.get(token)

    async def is_active(self, token: str) -> bool:
        if self.consume_before_recheck:
            self.claims.pop(token, None)
        return token in self.claims

    async def consume(self, token: str) -> None:
        self.claims.pop(token, None)
        self.consumed.append(token)


class InMemoryCursorLedger:
    def __init__(self):
        self.cursors: Dict[tuple, Cursor] = {}

    async def get(self, owner: str, repo: str, ref: str) -> Optional[Cursor]:
        return self.cursors.get((owner, repo, ref))

    async def compare_and_set(self, owner: str, repo: str, ref: str, candidate: Cursor) -> bool:
        current = self.cursors.get((owner, repo, ref))
        if current is not None and current.run_number >= candidate.run_number:
            return False
        self.cursors[(owner, repo, ref)] = candidate.model_copy(update={"owner": owner, "repo": repo, "ref": ref})
        return True

    async def find_by_ref(self, ref: str, limit: int = 20) -> List[Cursor]:
        matches = [c for (_, _, r), c in self.cursors.items() if r == ref]
        matches.sort(key=lambda c: c.updated_at, reverse=True)
        return matches[:limit]
