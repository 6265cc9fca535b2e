"""
Bootstrap configuration loaded from environment variables.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Bootstrap settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # MongoDB
    mongo_uri: str = Field(default="mongodb://localhost:27017")
    mongo_db_name: Optional[str] = Field(
        default=None,
        description="Override the manifest's target database",
    )
    server_selection_timeout_ms: int = Field(default=5000, gt=0)

    # Application user (never embedded in manifests)
    app_user_password: Optional[SecretStr] = None

    # Seed payload
    seed_admin_user_id: int = Field(default=1)
    seed_admin_username: str = Field(default="admin", min_length=1)

    # Reporting
    collect_stats: bool = True

    # Logging
    log_level: str = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
