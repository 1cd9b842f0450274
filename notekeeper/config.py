"""Runtime settings, read from ``NOTEKEEPER_*`` environment variables or ``.env``."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NOTEKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: str = "notekeeper.db"
    # "auto" falls back to memory when SQLite cannot be opened
    backend: Literal["auto", "sqlite", "memory"] = "auto"
    serialize_writes: bool = False
    log_level: str = "INFO"

@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
