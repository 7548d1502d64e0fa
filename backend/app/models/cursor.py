from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core import ensure_utc


class Cursor(BaseModel):
    """Latest authoritative commit for one (owner, repo, ref).

    Ordered by the CI run number only; wall-clock time is informational.
    """

    sha: str
    run_number: int = Field(..., ge=0)
    owner: Optional[str] = None
    repo: Optional[str] = None
    ref: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")

    @field_validator("updated_at", mode="after")
    @classmethod
    def stored_as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
