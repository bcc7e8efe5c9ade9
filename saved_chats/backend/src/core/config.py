"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./saved_chats.db", alias="DATABASE_URL"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_enabled_flag: bool = Field(default=False, alias="REDIS_ENABLED")
    aws_region: str | None = Field(default=None, alias="AWS_REGION")
    aws_access_key_id: str | None = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: str | None = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    aws_endpoint_url: str | None = Field(default=None, alias="AWS_ENDPOINT_URL")
    chat_images_bucket: str | None = Field(default=None, alias="CHAT_IMAGES_BUCKET")
    chat_images_public_url: str | None = Field(
        default=None, alias="CHAT_IMAGES_PUBLIC_URL"
    )
    chat_images_key_prefix: str = Field(
        default="saved-chats", alias="CHAT_IMAGES_KEY_PREFIX"
    )
    chat_images_upload_expires_in: int = Field(
        default=3600, alias="CHAT_IMAGES_UPLOAD_EXPIRES_IN"
    )
    local_storage_path: str = Field(
        default="/tmp/saved-chats", alias="LOCAL_STORAGE_PATH"
    )
    github_api_url: str = Field(
        default="https://api.github.com", alias="GITHUB_API_URL"
    )
    identity_cache_ttl_seconds: int | None = Field(
        default=None, alias="IDENTITY_CACHE_TTL_SECONDS"
    )
    feedback_admin_user_ids_raw: str | None = Field(
        default=None, alias="FEEDBACK_ADMIN_USER_IDS"
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("chat_images_public_url")
    @classmethod
    def _require_https_public_url(cls, value: str | None) -> str | None:
        """Stored image URLs are only recognized when served over https."""

        if not value:
            return None
        if not value.startswith("https://"):
            raise ValueError("CHAT_IMAGES_PUBLIC_URL must be an https:// URL")
        return value

    @property
    def redis_enabled(self) -> bool:
        """Return ``True`` when Redis integrations should be used."""

        return self.redis_enabled_flag

    @property
    def chat_images_configured(self) -> bool:
        """Return ``True`` when chat images can be minted."""

        return bool(self.chat_images_bucket and self.chat_images_public_url)

    @property
    def feedback_admin_user_ids(self) -> set[str]:
        """Return the user ids allowed to delete feedback-only records."""

        raw_value = self.feedback_admin_user_ids_raw or ""
        candidates = raw_value.replace(",", " ").split()
        return {candidate.strip() for candidate in candidates if candidate.strip()}


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
