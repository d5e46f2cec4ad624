# model_repo/core/config.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # General
    ENV: str = "dev"
    APP_NAME: str = "OSMSAT Model Repository"

    # Storage / DB
    DB_URL: str = "sqlite:///./data/registry.db"
    UPLOAD_ROOT: str = "./uploads"
    MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024

    # Auth
    JWT_SECRET: str = "dev-secret-please-change"
    JWT_ISSUER: str = "model-repository"
    JWT_AUDIENCE: str = "model-repository-users"
    JWT_EXPIRE_DAYS: int = 7

    # Registration / invites
    DISABLE_REGISTRATION: bool = False
    INVITE_TTL_DAYS: int = 7
    PUBLIC_BASE_URL: Optional[str] = None

    # Listing
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_SIZE: int = 100

    # Metadata
    DEFAULT_MODEL_FORMAT: str = "TensorFlow.js"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Misc
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
