"""
Publish whitelist.

Repositories on the whitelist are exempt from the payload size ceiling. The
list is a plain text file of repository URLs (one per line, ``#`` comments
allowed) served from ``WHITELIST_URL``, merged with the static ``WHITELIST``
setting. The remote list is cached in Redis.
"""

import logging
from typing import List, Optional

from app.core.cache import CacheKeys, CacheTTL, cache_service
from app.core.config import settings
from app.core.http_utils import InstrumentedAsyncClient

logger = logging.getLogger(__name__)


def normalize_entry(entry: str) -> Optional[str]:
    """
    Reduce a whitelist line to ``owner/repo`` (lowercase).

    Accepts ``https://github.com/owner/repo``, ``github.com/owner/repo/`` and
    bare ``owner/repo``.
    """
    entry = entry.strip()
    if not entry or entry.startswith("#"):
        return None
    entry = entry.rstrip("/")
    if entry.endswith(".git"):
        entry = entry[:-4]
    parts = [p for p in entry.split("/") if p]
    if len(parts) < 2:
        return None
    return f"{parts[-2]}/{parts[-1]}".lower()


def parse_whitelist(text: str) -> List[str]:
    entries = []
    for line in text.splitlines():
        normalized = normalize_entry(line)
        if normalized:
            entries.append(normalized)
    return entries


async def _fetch_remote_whitelist() -> Optional[List[str]]:
    if not settings.WHITELIST_URL:
        return []

    async with InstrumentedAsyncClient("Whitelist", timeout=10.0) as client:
        response = await client.get(settings.WHITELIST_URL)

    if response.status_code != 200:
        logger.warning(f"Failed to fetch whitelist: HTTP {response.status_code}")
        return None
    return parse_whitelist(response.text)


async def is_whitelisted(owner: str, repo: str) -> bool:
    """Whether ``owner/repo`` may publish payloads above the size ceiling."""
    name = f"{owner}/{repo}".lower()

    static_entries = {normalize_entry(e) for e in settings.WHITELIST}
    if name in static_entries:
        return True

    try:
        entries = await cache_service.get_or_fetch(
            CacheKeys.whitelist(), _fetch_remote_whitelist, ttl_seconds=CacheTTL.WHITELIST
        )
    except Exception as e:
        logger.warning(f"Whitelist unavailable, treating {name} as not whitelisted: {e}")
        return False

    return name in (entries or [])
