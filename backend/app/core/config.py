from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Continuous Releases"
    API_V1_STR: str = "/api/v1"

    MONGODB_URL: str
    DATABASE_NAME: str = "continuous_releases"

    # Redis Cache Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_PREFIX: str = "cr:"
    CACHE_DEFAULT_TTL_HOURS: int = 24

    # GitHub App
    GITHUB_APP_ID: int
    GITHUB_APP_PRIVATE_KEY: str
    GITHUB_API_URL: str = "https://api.github.com"

    # Public origin used to build artifact URLs. Falls back to the request origin.
    PUBLIC_BASE_URL: Optional[str] = None

    # Publish policy
    MAX_PAYLOAD_BYTES: int = 20 * 1024 * 1024
    WHITELIST_URL: str = ""
    WHITELIST: List[str] = []

    # Claims registered by CI runs that never publish expire after this
    CLAIM_TTL_HOURS: int = 24

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
