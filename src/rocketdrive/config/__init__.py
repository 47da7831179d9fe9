"""Configuration package for the backup agent."""

from .settings import LoggingSettings, AppSettings, get_settings

from .schema import (
    AgentConfig,
    BackupSettings,
    NotifySettings,
    SmtpSettings,
    TelegramSettings,
    GoogleDriveSettings,
    LoggingConfig,
    ScheduleSettings,
    ScheduleType,
    EXAMPLE_CONFIG
)

from .loader import (
    ConfigLoader,
    ConfigurationError,
    load_config_from_env
)

__all__ = [
    # Process settings
    "LoggingSettings",
    "AppSettings",
    "get_settings",

    # Settings file
    "AgentConfig",
    "BackupSettings",
    "NotifySettings",
    "SmtpSettings",
    "TelegramSettings",
    "GoogleDriveSettings",
    "LoggingConfig",
    "ScheduleSettings",
    "ScheduleType",
    "EXAMPLE_CONFIG",

    "ConfigLoader",
    "ConfigurationError",
    "load_config_from_env"
]
