"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Image Studio"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    DEBUG: bool = True

    # ==========================================================================
    # Provider (Vmake AI)
    # ==========================================================================
    VMAKE_API_KEY: Optional[str] = None
    VMAKE_API_URL: str = "https://open.vmake.ai/api/v1"
    VMAKE_TIMEOUT_SECONDS: float = 60.0

    # Requests larger than this (decoded) are rejected before reaching Vmake
    MAX_IMAGE_SIZE_BYTES: int = 10485760  # 10MB

    # ==========================================================================
    # Workflow Client Settings
    # ==========================================================================
    # Where the workflow reaches the studio service
    STUDIO_BASE_URL: str = "http://localhost:8000"
    STUDIO_TIMEOUT_SECONDS: float = 120.0

    # Enhancement payload preparation
    COMPRESS_MAX_EDGE: int = 1024
    COMPRESS_QUALITY: int = 70

    # ==========================================================================
    # Polling Settings
    # ==========================================================================
    POLL_INTERVAL_SECONDS: float = 2.0
    POLL_PROGRESS_STEP: int = 10
    # Set both to None for unbounded polling
    POLL_MAX_ATTEMPTS: Optional[int] = 150
    POLL_TIMEOUT_SECONDS: Optional[float] = None

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost:8000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
