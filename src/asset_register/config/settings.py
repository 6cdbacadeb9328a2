from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_url: str = "sqlite:///./data/assets.db"
    app_name: str = "asset-register"
    debug: bool = False
    log_level: str = "INFO"
    require_user_header: bool = False
    export_sheet_name: str = "Assets"

    model_config = {"env_prefix": "ASSETREG_", "env_file": ".env"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
