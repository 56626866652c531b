"""Configuration management using pydantic-settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # MinIO settings
    minio_endpoint: str = "localhost:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_secure: bool = False
    # Base URL images are served from; defaults to the MinIO endpoint itself
    minio_public_url: Optional[str] = None

    # Article image storage
    images_bucket: str = "article-images"
    content_prefix: str = "content"

    # Image compression ceilings
    image_max_width: int = 1920
    image_max_height: int = 1080
    image_quality: float = 0.85
    image_max_size_mb: float = 1.0
    max_upload_size_mb: float = 20.0

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: str = "*"

    @property
    def public_base_url(self) -> str:
        """Base URL for public object links, without a trailing slash."""
        if self.minio_public_url:
            return self.minio_public_url.rstrip("/")
        scheme = "https" if self.minio_secure else "http"
        return f"{scheme}://{self.minio_endpoint}"

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_size_mb * 1024 * 1024)


# Global settings instance
settings = Settings()
