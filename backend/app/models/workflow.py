from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class Claim(BaseModel):
    """
    Single-use authorization record for one CI run.

    Registered when the run starts and keyed by an opaque token; a
    successful publish deletes it, which makes the token unusable.
    """

    owner: str
    repo: str
    ref: str = Field(..., description="Branch name, or the pull request number for PR runs")
    sha: str = Field(..., description="Commit the run was triggered for")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def is_pull_request(self) -> bool:
        return self.ref.isdecimal()
