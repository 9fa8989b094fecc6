"""
Sceneflow Settings

Pydantic settings for Supabase access and the HTTP service.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .env_loader import ensure_env_loaded


class Settings(BaseSettings):
    """Application settings read from the environment and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_role_key: str = Field(default="")

    # Edge function calls
    functions_timeout_seconds: float = Field(default=150.0)

    # Orchestrator tuning file (see sceneflow.core.config)
    config_path: Optional[str] = Field(default=None)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    resume_on_startup: bool = Field(default=True)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    @property
    def functions_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/functions/v1"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    ensure_env_loaded()
    return Settings()
