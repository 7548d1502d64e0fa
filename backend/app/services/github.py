import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from jose import jwt

from app.core.cache import CacheKeys, CacheTTL, cache_service
from app.core.constants import (
    GITHUB_API_TIMEOUT,
    GITHUB_APP_JWT_TTL,
    GITHUB_COMMENTS_PAGE_SIZE,
)
from app.core.http_utils import HTTPRequestError, InstrumentedAsyncClient
from app.models.github_api import CheckRun, Installation, InstallationToken, IssueComment

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _api_client() -> AsyncIterator[InstrumentedAsyncClient]:
    async with InstrumentedAsyncClient("GitHub API", timeout=GITHUB_API_TIMEOUT) as client:
        yield client


def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> None:
    if response.status_code >= 400:
        raise HTTPRequestError(
            f"GitHub API {method} {endpoint} failed: {response.status_code} {response.text[:200]}",
            status_code=response.status_code,
        )


class GitHubAppService:
    """
    GitHub App authentication.

    Signs short-lived app JWTs and exchanges them for per-repository
    installation tokens, which are cached in Redis and shared between pods.
    """

    def __init__(self, app_id: int, private_key: str, api_url: str = "https://api.github.com"):
        self.app_id = app_id
        self.private_key = private_key
        self.api_url = api_url.rstrip("/")

    def _app_jwt(self) -> str:
        now = int(time.time())
        payload = {
            # Backdated to tolerate clock drift with GitHub
            "iat": now - 60,
            "exp": now + GITHUB_APP_JWT_TTL,
            "iss": str(self.app_id),
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256")

    def _app_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._app_jwt()}", "Accept": "application/vnd.github+json"}

    async def get_repo_installation(self, owner: str, repo: str) -> Installation:
        """Installation of this app on ``owner/repo``, including its permissions."""
        endpoint = f"/repos/{owner}/{repo}/installation"
        async with _api_client() as client:
            response = await client.get(f"{self.api_url}{endpoint}", headers=self._app_headers())
        _raise_for_status(response, "GET", endpoint)
        return Installation(**response.json())

    async def _create_installation_token(self, installation_id: int) -> InstallationToken:
        endpoint = f"/app/installations/{installation_id}/access_tokens"
        async with _api_client() as client:
            response = await client.post(f"{self.api_url}{endpoint}", headers=self._app_headers())
        _raise_for_status(response, "POST", endpoint)
        return InstallationToken(**response.json())

    async def installation_for(self, owner: str, repo: str) -> "GitHubInstallation":
        """API client authenticated as the app's installation on ``owner/repo``."""
        cache_key = CacheKeys.installation_token(owner, repo)

        token = await cache_service.get(cache_key)
        if not token:
            installation = await self.get_repo_installation(owner, repo)
            token = (await self._create_installation_token(installation.id)).token
            await cache_service.set(cache_key, token, ttl_seconds=CacheTTL.INSTALLATION_TOKEN)
            logger.info(f"Created installation token for {owner}/{repo}")

        return GitHubInstallation(self, owner, repo, token)


class GitHubInstallation:
    """REST operations on one repository, authenticated as the app installation."""

    def __init__(self, app: GitHubAppService, owner: str, repo: str, token: str):
        self.app = app
        self.owner = owner
        self.repo = repo
        self._token = token

    @property
    def app_id(self) -> int:
        return self.app.app_id

    def _get_auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}", "Accept": "application/vnd.github+json"}

    def _repo_endpoint(self, path: str) -> str:
        return f"/repos/{self.owner}/{self.repo}{path}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        async with _api_client() as client:
            response = await client.request(
                method,
                f"{self.app.api_url}{endpoint}",
                headers=self._get_auth_headers(),
                params=params,
                json=json,
            )
        _raise_for_status(response, method, endpoint)
        return response.json()

    async def list_check_runs(self, sha: str, check_name: str) -> List[CheckRun]:
        """Check runs named ``check_name`` created by this app on ``sha``."""
        data = await self._request(
            "GET",
            self._repo_endpoint(f"/commits/{sha}/check-runs"),
            params={"check_name": check_name, "app_id": self.app_id},
        )
        return [CheckRun(**run) for run in data.get("check_runs", [])]

    async def create_check_run(
        self,
        sha: str,
        name: str,
        title: str,
        summary: str,
        text: str,
        conclusion: str = "success",
    ) -> CheckRun:
        data = await self._request(
            "POST",
            self._repo_endpoint("/check-runs"),
            json={
                "name": name,
                "head_sha": sha,
                "conclusion": conclusion,
                "output": {"title": title, "summary": summary, "text": text},
            },
        )
        return CheckRun(**data)

    async def iter_comment_pages(self, issue_number: int) -> AsyncIterator[List[IssueComment]]:
        """
        Lazily yield pages of comments on an issue or pull request.

        Pages are fetched one at a time following the ``Link`` header, so a
        consumer that stops iterating stops the fetching too.
        """
        endpoint = self._repo_endpoint(f"/issues/{issue_number}/comments")
        url: Optional[str] = f"{self.app.api_url}{endpoint}"
        params: Optional[Dict[str, Any]] = {"per_page": GITHUB_COMMENTS_PAGE_SIZE}

        async with _api_client() as client:
            while url:
                response = await client.get(url, headers=self._get_auth_headers(), params=params)
                _raise_for_status(response, "GET", endpoint)

                yield [IssueComment(**comment) for comment in response.json()]

                # The next link already carries the query string
                url = response.links.get("next", {}).get("url")
                params = None

    async def create_comment(self, issue_number: int, body: str) -> IssueComment:
        data = await self._request(
            "POST",
            self._repo_endpoint(f"/issues/{issue_number}/comments"),
            json={"body": body},
        )
        return IssueComment(**data)

    async def update_comment(self, comment_id: int, body: str) -> IssueComment:
        data = await self._request(
            "PATCH",
            self._repo_endpoint(f"/issues/comments/{comment_id}"),
            json={"body": body},
        )
        return IssueComment(**data)

    async def get_installation_permissions(self) -> Dict[str, str]:
        installation = await self.app.get_repo_installation(self.owner, self.repo)
        return installation.permissions
