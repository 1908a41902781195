from __future__ import annotations
from dotenv import load_dotenv, find_dotenv; load_dotenv(find_dotenv(usecwd=True))

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # General
    TZ: str = Field(default="Europe/Sarajevo", description="Timezone for CLI calendar dates")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON lines instead of console output")

    # Output
    EXPORT_DIR: Path = Field(default=Path("./exports"))

    # Apple Health export.xml backing the store
    EXPORT_SOURCE: Optional[Path] = Field(
        default=None,
        description="Path to Apple Health export.xml",
        validation_alias=AliasChoices("EXPORT_SOURCE", "APPLE_HEALTH_EXPORT"),
    )

    # Queries
    QUERY_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0, description="Wait for a category's first reply")
    QUERY_PAGE_LIMIT: Optional[int] = Field(default=None, gt=0, description="Samples per page; unset = no limit")

    DEFAULT_LOOKBACK_DAYS: int = Field(default=730, ge=0)


def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
