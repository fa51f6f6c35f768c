from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

VERSION = "0.1.0"


class Settings(BaseSettings):
    database_url: str = "sqlite:///./monica.db"
    credentials_dir: Path = Path.home() / ".monica"
    request_timeout_seconds: float = 30.0
    per_page: int = 50
    max_per_page: int = 100
    sync_interval_minutes: int = 15
    contact_cache_ttl_seconds: int = 300
    pull_sleep_seconds: float = 0.5
    user_agent: str = f"MonicaClient/{VERSION}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
