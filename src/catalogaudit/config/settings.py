"""Application settings.

All settings can be overridden via environment variables with the
CATALOGAUDIT_ prefix, nested sections separated by a double underscore.
Example: CATALOGAUDIT_RULES__SCHEDULER_INTERVAL_HOURS=12
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROVIDER_RATE_LIMITS: dict[str, float] = {
    "musicbrainz": 1.0,
    "fanarttv": 3.0,
    "audiodb": 2.0,
    "discogs": 1.0,
    "lastfm": 5.0,
    "wikidata": 5.0,
    "duckduckgo": 1.0,
    "deezer": 5.0,
}


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./catalogaudit.db"
    echo: bool = False
    pool_pre_ping: bool = True


class LibrarySettings(BaseModel):
    """Library layout settings."""

    # None means the built-in filename defaults (folder.jpg, fanart.jpg, ...)
    platform_profile: Literal["emby", "jellyfin", "kodi", "plex"] | None = None
    classical_mode_default: Literal["skip", "composer", "performer"] = "skip"


class RulesSettings(BaseModel):
    """Rule engine, scheduler and bulk executor settings."""

    # 0 disables the periodic rule run
    scheduler_interval_hours: float = Field(default=0, ge=0)
    page_size: int = Field(default=200, gt=0)
    bulk_progress_every: int = Field(default=10, gt=0)
    clear_resolved_after_days: int = Field(default=7, ge=0)


class ImageSettings(BaseModel):
    """Image download and normalization settings."""

    max_download_bytes: int = 25 * 1024 * 1024
    download_timeout_seconds: float = 30.0
    max_dimension: int = 3000
    jpeg_quality: int = Field(default=85, ge=1, le=100)


class ProviderSettings(BaseModel):
    """Metadata provider settings."""

    rate_limits: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_PROVIDER_RATE_LIMITS)
    )

    @field_validator("rate_limits")
    @classmethod
    def _merge_defaults(cls, value: dict[str, float]) -> dict[str, float]:
        for name, rate in value.items():
            if rate <= 0:
                raise ValueError(f"rate limit for {name} must be positive")
        return {**DEFAULT_PROVIDER_RATE_LIMITS, **value}


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_level: str = "INFO"
    log_json_format: bool = False


class Settings(BaseSettings):
    """catalog-audit application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOGAUDIT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "catalogaudit"
    app_env: Literal["development", "production", "test"] = "production"
    api_host: str = "127.0.0.1"
    api_port: int = Field(default=8000, gt=0, le=65535)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    library: LibrarySettings = Field(default_factory=LibrarySettings)
    rules: RulesSettings = Field(default_factory=RulesSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
