"""Engine and tooling configuration loaded from environment variables and .env file."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Dialogue engine settings.

    Values are read from ``DIALOGUE_*`` environment variables first,
    then from a .env file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIALOGUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Characters revealed per second while a node is typed out (0 = instant)
    typing_speed: float = 30.0
    content_root: Path = Path("resources/dialogue")
    log_level: str = "INFO"

    web_host: str = "127.0.0.1"
    web_port: int = 5000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
