from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Echo SQL statements
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./exitflow.db"

    # Workflow policy file (YAML); defaults apply when unset
    config_path: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_dir: str = "/var/log/exitflow"
    file_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="EXITFLOW_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
