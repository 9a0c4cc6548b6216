"""Bootstrap settings read from the environment.

These are the knobs needed BEFORE the operator config file is loaded (where to
look for it, how to log while loading it, where the HTTP server binds). All
operator-facing configuration lives in the JSON config file managed by
ConfigStore.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_home_dir() -> Path:
    return Path.home() / ".reelvault"


class Settings(BaseSettings):
    """Process bootstrap settings (prefix ``REELVAULT_``)."""

    model_config = SettingsConfigDict(
        env_prefix="REELVAULT_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "reelvault"
    host: str = "0.0.0.0"
    port: int = 9999

    # Explicit config file location. When set, setup never creates or moves it.
    config_file: Path | None = None
    home_dir: Path = Field(default_factory=_default_home_dir)

    cpu_profile_path: Path | None = None
    log_json_format: bool = False

    # Seconds startup waits for stale download/tmp deletion before moving on
    temp_cleanup_timeout: float = 1.0
    transcoder_download_timeout: float = 300.0


# Hey future me - cached so every caller sees the same Settings. Tests that
# tweak env vars must call get_settings.cache_clear() afterwards.
@lru_cache
def get_settings() -> Settings:
    """Get the process-wide bootstrap settings."""
    return Settings()
