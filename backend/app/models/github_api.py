"""
Pydantic models for the GitHub REST API responses used by the reporter.

Uses extra="ignore" to silently discard fields we don't use.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class GitHubAppRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    slug: Optional[str] = None


class CheckRun(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    head_sha: Optional[str] = None
    html_url: Optional[str] = None
    conclusion: Optional[str] = None


class IssueComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    body: Optional[str] = None
    html_url: Optional[str] = None
    performed_via_github_app: Optional[GitHubAppRef] = None

    def authored_by_app(self, app_id: int) -> bool:
        return self.performed_via_github_app is not None and self.performed_via_github_app.id == app_id


class Installation(BaseModel):
    """Repository installation of the GitHub App."""

    model_config = ConfigDict(extra="ignore")

    id: int
    app_id: Optional[int] = None
    permissions: Dict[str, str] = {}


class InstallationToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str
    expires_at: Optional[str] = None
