"""
Configuration settings for the lms-catalog-sync service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./lms_catalog.db",
        description="Catalog store connection string (postgresql:// or sqlite://)",
    )

    # ========================================
    # Canvas LMS API
    # ========================================
    canvas_base_url: str = Field(
        default="https://canvas.instructure.com",
        description="Canvas instance base URL (no trailing /api/v1)",
    )
    canvas_api_prefix: str = Field(
        default="/api/v1",
        description="Path prefix prepended to every Canvas REST endpoint",
    )
    canvas_page_size: int = Field(
        default=100,
        ge=1,
        description="per_page value requested on every paginated Canvas call",
    )
    canvas_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to each Canvas HTTP request",
    )

    # ========================================
    # Sync Behavior
    # ========================================
    sync_window_months: int = Field(
        default=8,
        ge=1,
        description="Only courses created within this many months are synced",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/lms_catalog_sync.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    def has_canvas_configured(self) -> bool:
        """Check if a Canvas instance URL is configured."""
        return bool(self.canvas_base_url)

    def get_canvas_config(self) -> dict[str, object]:
        """Get Canvas client configuration as a dictionary."""
        return {
            "base_url": self.canvas_base_url,
            "api_prefix": self.canvas_api_prefix,
            "page_size": self.canvas_page_size,
            "timeout_seconds": self.canvas_timeout_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
