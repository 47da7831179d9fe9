"""Process-level settings read from the environment and `.env`."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default="./logs/agent.log")

    class Config:
        env_prefix = "ROCKETDRIVE_LOG_"


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="RocketDrive Backup Agent")
    version: str = Field(default="1.0.0")
    config_file: Optional[str] = Field(default=None)
    fatal_log_path: str = Field(default="./logs/fatal.log")

    logging: LoggingSettings = LoggingSettings()

    class Config:
        env_prefix = "ROCKETDRIVE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings
