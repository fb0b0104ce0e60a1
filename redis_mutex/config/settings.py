# redis_mutex/config/settings.py

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MutexSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REDIS_MUTEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    script_cache: bool = True

    # --- Key layout ---
    key_prefix: str = Field("@redis-mutex:", min_length=1)

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> MutexSettings:
    return MutexSettings()
