"""
Resolution of published URLs back to stored package archives.

``/{owner}/{repo}/{package}@{tag}`` and the compact ``/{package}@{tag}`` both
accept a ref (branch name or pull request number), which follows the cursor
to the latest authoritative commit, or an abbreviated or full commit sha.
Package names may be scoped (``@scope/name``).
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from app.repositories.cursors import CursorRepository
from app.services.publish import package_key
from app.services.storage import BlobStore

logger = logging.getLogger(__name__)

SHA_PATTERN = re.compile(r"^[0-9a-f]{7,40}$")


@dataclass
class ArtifactRef:
    package: str
    tag: str
    owner: Optional[str] = None
    repo: Optional[str] = None

    @property
    def compact(self) -> bool:
        return self.owner is None


def parse_artifact_path(path: str) -> Optional[ArtifactRef]:
    """
    Split a download path into its parts, or None when it is not an artifact path.

    >>> parse_artifact_path("acme/widgets/@acme/ui@main")
    ArtifactRef(package='@acme/ui', tag='main', owner='acme', repo='widgets')
    """
    name, sep, tag = path.strip("/").rpartition("@")
    if not sep or not name or not tag or "/" in tag:
        return None

    segments = name.split("/")
    if any(not s for s in segments):
        return None

    if segments[0].startswith("@"):
        # Scoped compact form: @scope/name@tag
        if len(segments) == 2:
            return ArtifactRef(package=name, tag=tag)
        return None

    if len(segments) == 1:
        return ArtifactRef(package=name, tag=tag)
    if len(segments) == 2:
        return None

    package = "/".join(segments[2:])
    if "/" in package and not package.startswith("@"):
        return None
    return ArtifactRef(package=package, tag=tag, owner=segments[0], repo=segments[1])


class ArtifactResolver:
    def __init__(self, packages: BlobStore, cursors: CursorRepository):
        self.packages = packages
        self.cursors = cursors

    async def resolve(self, ref: ArtifactRef) -> Optional[str]:
        """Package key the artifact reference points to, or None."""
        if ref.compact:
            return await self._resolve_compact(ref)
        return await self._resolve_qualified(ref)

    async def _resolve_qualified(self, ref: ArtifactRef) -> Optional[str]:
        cursor = await self.cursors.get(ref.owner, ref.repo, ref.tag)
        if cursor is not None:
            key = package_key(ref.owner, ref.repo, cursor.sha, ref.package)
            if await self.packages.has(key):
                return key

        if not SHA_PATTERN.match(ref.tag):
            return None
        keys = await self.packages.find_matching(
            f"^{re.escape(ref.owner)}:{re.escape(ref.repo)}:{ref.tag}[0-9a-f]*:{re.escape(ref.package)}$"
        )
        return keys[0] if keys else None

    async def _resolve_compact(self, ref: ArtifactRef) -> Optional[str]:
        for cursor in await self.cursors.find_by_ref(ref.tag):
            if not cursor.owner or not cursor.repo:
                continue
            key = package_key(cursor.owner, cursor.repo, cursor.sha, ref.package)
            if await self.packages.has(key):
                return key

        if not SHA_PATTERN.match(ref.tag):
            return None
        keys = await self.packages.find_matching(f"^[^:]+:[^:]+:{ref.tag}[0-9a-f]*:{re.escape(ref.package)}$")
        return keys[0] if keys else None
