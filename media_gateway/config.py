"""Configuration management with environment-based settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Media Gateway"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "production"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Security
    IMAGE_API_SECRET: str = ""
    CORS_ORIGINS: List[str] = []

    # Object store (R2 or any S3-compatible endpoint)
    MEDIA_BUCKET: str = "media"
    S3_ENDPOINT_URL: Optional[str] = None
    AWS_REGION: str = "auto"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    LOCAL_STORAGE_DIR: str = "./data"

    # Cache purge
    CF_API_TOKEN: str = ""
    ZONE_ID: str = ""
    CF_API_BASE_URL: str = "https://api.cloudflare.com/client/v4"

    # Image serving
    ORIGIN_BASE_URL: str = "https://media.arroweffect.com"
    TRANSFORM_BASE_URL: str = "https://img.arroweffect.com"
    TRANSFORM_USER_AGENT: str = "Cloudflare-Worker"

    # Outbound HTTP
    HTTP_TIMEOUT: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # "json" or "text"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
