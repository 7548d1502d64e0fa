"""
Publish error taxonomy.

Every error raised on the publish path maps to one HTTP status code. The
exception handler registered in ``app.main`` renders them as JSON.
"""

from typing import List, Optional


class PublishError(Exception):
    """Base class for errors surfaced to the CI client."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"ok": False, "message": self.message}


class ClientError(PublishError):
    """Malformed or missing request data."""

    status_code = 400


class AuthorizationError(PublishError):
    """Unknown, consumed or raced claim. Never retried."""

    status_code = 401


class PolicyError(PublishError):
    """Request violates a publish policy (payload size)."""

    status_code = 413


class ChecksumMismatchError(Exception):
    """Stored content does not hash to the checksum declared by the client."""

    def __init__(self, key: str, expected: str, actual: str):
        super().__init__(f"Checksum mismatch for {key}: expected {expected}, got {actual}")
        self.key = key
        self.expected = expected
        self.actual = actual


class UploadError(PublishError):
    """One or more artifact uploads failed.

    Carries every per-artifact failure so the client sees the complete set.
    """

    def __init__(self, failures: List[tuple]):
        self.failures = failures
        names = ", ".join(name for name, _ in failures)
        super().__init__(f"Failed to upload: {names}")
        if all(isinstance(err, ChecksumMismatchError) for _, err in failures):
            self.status_code = 422

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = [{"name": name, "error": str(err)} for name, err in self.failures]
        return data


class ReportingError(Exception):
    """Check run or comment reporting failed. Logged, never propagated."""

    def __init__(self, track: str, cause: Exception):
        super().__init__(f"{track} reporting failed: {cause}")
        self.track = track
        self.cause = cause
