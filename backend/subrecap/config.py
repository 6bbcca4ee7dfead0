"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - twitch_persisted_query_hash is a 64-char lowercase hex sha256

Design Decisions:
    - Defaults provided for all non-secret settings: runs against a local Redis unchanged
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from subrecap.core.domain_types import CacheBackend, FOLLOWS_PAGE_SIZE

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Twitch
    twitch_client_id: str = "twitch-client-id-placeholder"
    twitch_persisted_query_hash: str = "0" * 64
    helix_base_url: str = "https://api.twitch.tv/helix"
    gql_endpoint: str = "https://gql.twitch.tv/gql"

    @field_validator("twitch_persisted_query_hash", mode="before")
    @classmethod
    def normalize_query_hash(cls, v: str) -> str:
        v = str(v).strip().lower()
        if not _SHA256_RE.match(v):
            raise ValueError("twitch_persisted_query_hash must be a sha256 hex digest")
        return v

    @field_validator("helix_base_url", "gql_endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Pipeline
    follows_page_size: int = Field(FOLLOWS_PAGE_SIZE, ge=1, le=100)
    fanout_concurrency: int = Field(8, ge=1)

    # Upstream HTTP
    http_timeout_seconds: float = 10.0
    http_max_retries: int = 3
    http_base_delay_ms: int = 250
    http_max_delay_ms: int = 5_000

    # Cache
    cache_backend: CacheBackend = CacheBackend.REDIS
    redis_url: str = "redis://localhost:6379/0"
    cache_key_prefix: str = "subrecap:"
    cache_ttl_seconds: int | None = None

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
