"""Runtime settings for the reservation service."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROOMSCHED_", env_file=".env", env_file_encoding="utf-8"
    )

    project_name: str = "Room Reservation Service"
    log_level: str = "INFO"

    # IANA zone name; None means the host's local time.
    timezone: str | None = None

    seed_demo_data: bool = False
    schedule_horizon_days: int = Field(default=14, gt=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()
