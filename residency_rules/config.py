"""Configuration management using Pydantic Settings"""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from RESIDENCY_* environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="RESIDENCY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_path: Path = Path("residency_rules.db")

    # Logging
    service_name: str = "residency-rules"
    log_level: str = "WARNING"
    log_json: bool = False


settings = Settings()
