"""Configuration schema for the backup agent's settings file."""

from typing import Any, List, Optional
from enum import Enum
from pydantic import BaseModel, Field, validator

from ..core.selector import normalize_extensions

DEFAULT_TARGET_FOLDER = "RocketDriveUploads"
DEFAULT_CHECKPOINT_PATH = "last_uploaded.txt"
DEFAULT_STATUS_FILE_PATH = "logs/status.json"
DEFAULT_UPLOAD_RETRY_COUNT = 3


class ScheduleType(str, Enum):
    """How often the agent runs."""
    ONCE = "once"
    INTERVAL = "interval"
    CRON = "cron"


class NotifySettings(BaseModel):
    """Which run outcomes trigger notifications."""

    on_success: bool = Field(default=False, alias="OnSuccess")
    on_failure: bool = Field(default=False, alias="OnFailure")

    class Config:
        populate_by_name = True


class BackupSettings(BaseModel):
    """What to back up and where."""

    folders: List[str] = Field(default_factory=list, alias="Folders", description="Local roots to scan")
    allowed_extensions: List[str] = Field(
        default_factory=list,
        alias="AllowedExtensions",
        description="Extension allow-list; empty allows every file"
    )
    target_drive_folder_name: str = Field(default=DEFAULT_TARGET_FOLDER, alias="TargetDriveFolderName")
    last_uploaded_file_time_path: str = Field(default=DEFAULT_CHECKPOINT_PATH, alias="LastUploadedFileTimePath")
    overwrite_existing: bool = Field(default=False, alias="OverwriteExisting")
    upload_retry_count: int = Field(default=DEFAULT_UPLOAD_RETRY_COUNT, alias="UploadRetryCount")
    status_file_path: str = Field(default=DEFAULT_STATUS_FILE_PATH, alias="StatusFilePath")
    notify: NotifySettings = Field(default_factory=NotifySettings, alias="Notify")

    class Config:
        populate_by_name = True

    @validator('folders', pre=True)
    def validate_folders(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(folder).strip() for folder in v if str(folder).strip()]

    @validator('allowed_extensions', pre=True)
    def validate_allowed_extensions(cls, v):
        """Accept a list or a comma-separated string; store normalized entries."""
        return sorted(normalize_extensions(v))

    @validator('target_drive_folder_name', pre=True)
    def default_target_folder(cls, v):
        return _default_if_blank(v, DEFAULT_TARGET_FOLDER)

    @validator('last_uploaded_file_time_path', pre=True)
    def default_checkpoint_path(cls, v):
        return _default_if_blank(v, DEFAULT_CHECKPOINT_PATH)

    @validator('status_file_path', pre=True)
    def default_status_path(cls, v):
        return _default_if_blank(v, DEFAULT_STATUS_FILE_PATH)

    @validator('upload_retry_count', pre=True)
    def clamp_retry_count(cls, v):
        if v is None or v == "":
            return DEFAULT_UPLOAD_RETRY_COUNT
        return max(1, int(v))


class SmtpSettings(BaseModel):
    """Email notification channel."""

    enabled: bool = Field(default=False, alias="Enabled")
    host: Optional[str] = Field(None, alias="Host")
    port: int = Field(default=587, alias="Port")
    use_ssl: bool = Field(default=True, alias="UseSsl")
    username: Optional[str] = Field(None, alias="Username")
    password: Optional[str] = Field(None, alias="Password")
    from_address: Optional[str] = Field(None, alias="From")
    to_address: Optional[str] = Field(None, alias="To")

    class Config:
        populate_by_name = True


class TelegramSettings(BaseModel):
    """Telegram notification channel."""

    enabled: bool = Field(default=False, alias="Enabled")
    bot_token: Optional[str] = Field(None, alias="BotToken")
    chat_id: Optional[str] = Field(None, alias="ChatId")

    class Config:
        populate_by_name = True

    @validator('chat_id', pre=True)
    def chat_id_as_string(cls, v):
        # Chat ids are often written as bare (negative) integers
        return str(v) if v is not None else None


class GoogleDriveSettings(BaseModel):
    """Remote store credentials."""

    credentials_path: str = Field(default="credentials.json", alias="CredentialsPath")
    token_path: str = Field(default="token.json", alias="TokenPath")
    application_name: str = Field(default="RocketDrive Backup Agent", alias="ApplicationName")

    class Config:
        populate_by_name = True


class LoggingConfig(BaseModel):
    """Logging overrides from the settings file."""

    level: Optional[str] = Field(None, alias="Level")
    format: Optional[str] = Field(None, alias="Format")
    file_path: Optional[str] = Field(None, alias="FilePath")

    class Config:
        populate_by_name = True

    @validator('level')
    def validate_log_level(cls, v):
        if v is None:
            return v
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @validator('format')
    def validate_log_format(cls, v):
        if v is None:
            return v
        if v.lower() not in ('json', 'console'):
            raise ValueError("Log format must be 'json' or 'console'")
        return v.lower()


class ScheduleSettings(BaseModel):
    """Optional periodic execution."""

    type: ScheduleType = Field(default=ScheduleType.ONCE, alias="Type")
    interval_minutes: int = Field(default=60, alias="IntervalMinutes")
    cron_expression: Optional[str] = Field(None, alias="CronExpression")

    class Config:
        populate_by_name = True

    @validator('type', pre=True)
    def validate_type(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @validator('interval_minutes')
    def validate_interval(cls, v):
        if v < 1:
            raise ValueError("Interval must be at least 1 minute")
        return v

    @validator('cron_expression')
    def validate_cron_expression(cls, v):
        if v is not None and len(v.split()) != 5:
            raise ValueError("Cron expression must have five fields")
        return v


class AgentConfig(BaseModel):
    """Root of the settings file."""

    backup_settings: BackupSettings = Field(default_factory=BackupSettings, alias="BackupSettings")
    smtp: SmtpSettings = Field(default_factory=SmtpSettings, alias="Smtp")
    telegram: TelegramSettings = Field(default_factory=TelegramSettings, alias="Telegram")
    google_drive: GoogleDriveSettings = Field(default_factory=GoogleDriveSettings, alias="GoogleDrive")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, alias="Logging")
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings, alias="Schedule")

    class Config:
        populate_by_name = True
        extra = "ignore"


def _default_if_blank(value: Any, default: str) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return value


# Example configuration for documentation and `--write-example-config`
EXAMPLE_CONFIG = AgentConfig(
    BackupSettings=BackupSettings(
        Folders=["C:/Users/me/Documents", "D:/Projects"],
        AllowedExtensions=[".pdf", ".docx", ".zip"],
        TargetDriveFolderName=DEFAULT_TARGET_FOLDER,
        OverwriteExisting=False,
        UploadRetryCount=3,
        Notify=NotifySettings(OnSuccess=True, OnFailure=True)
    ),
    Smtp=SmtpSettings(
        Enabled=False,
        Host="smtp.example.com",
        Port=587,
        UseSsl=True,
        From="backup@example.com",
        To="me@example.com"
    ),
    Telegram=TelegramSettings(Enabled=False),
)
