import json
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.constants import (
    HEADER_BIN,
    HEADER_COMMENT,
    HEADER_COMPACT,
    HEADER_KEY,
    HEADER_ONLY_TEMPLATES,
    HEADER_PACKAGE_MANAGER,
    HEADER_RUN_ID,
    HEADER_SHASUMS,
)
from app.core.exceptions import ClientError
from app.models.publish import CommentMode, PackageManager

REQUIRED_HEADERS = (HEADER_RUN_ID, HEADER_KEY, HEADER_SHASUMS)
OPTIONAL_HEADERS = (
    HEADER_COMMENT,
    HEADER_COMPACT,
    HEADER_BIN,
    HEADER_PACKAGE_MANAGER,
    HEADER_ONLY_TEMPLATES,
)


class PublishHeaders(BaseModel):
    """Publish request metadata, validated once from the request headers."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    run_id: int = Field(..., ge=0, alias=HEADER_RUN_ID, description="CI run number, the cursor ordering key")
    key: str = Field(..., min_length=1, alias=HEADER_KEY, description="Single-use claim token")
    shasums: Dict[str, str] = Field(..., alias=HEADER_SHASUMS, description="Package name -> SHA-1 of the archive")
    comment: CommentMode = Field(CommentMode.UPDATE, alias=HEADER_COMMENT)
    compact: bool = Field(False, alias=HEADER_COMPACT)
    use_bin: bool = Field(False, alias=HEADER_BIN)
    package_manager: PackageManager = Field(PackageManager.NPM, alias=HEADER_PACKAGE_MANAGER)
    only_templates: bool = Field(False, alias=HEADER_ONLY_TEMPLATES)

    @field_validator("shasums", mode="before")
    @classmethod
    def parse_shasums(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"{HEADER_SHASUMS} must be a JSON object: {e}") from e
        return v

    @field_validator("compact", "use_bin", "only_templates", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> Any:
        # Only the literal "true" enables a flag
        if isinstance(v, str):
            return v == "true"
        return v

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "PublishHeaders":
        """
        Build the validated header set.

        Raises:
            ClientError: when a required header is missing or a value is malformed
        """
        missing = [name for name in REQUIRED_HEADERS if not headers.get(name)]
        if missing:
            raise ClientError(f"{', '.join(REQUIRED_HEADERS)} headers are required")

        data = {}
        for name in REQUIRED_HEADERS + OPTIONAL_HEADERS:
            value = headers.get(name)
            if value is not None and value != "":
                data[name] = value

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ClientError(f"Invalid publish headers: {details}") from e


class PublishResponse(BaseModel):
    ok: bool = True
    urls: List[str] = Field(default_factory=list, description="Installable URL per package, in submission order")
