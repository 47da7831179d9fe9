"""Configuration loader for JSON/YAML files and environment variables."""

import os
import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union, List

from .schema import AgentConfig, ScheduleType, EXAMPLE_CONFIG
from .settings import get_settings
from ..exceptions import ConfigurationError
from ..utils.logging import get_logger

DEFAULT_CONFIG_FILES = [
    './appsettings.json',
    './appsettings.yaml',
    './appsettings.yml',
    './config/appsettings.json',
    './config/appsettings.yaml',
    './config/appsettings.yml',
]

# ROCKETDRIVE_<NAME> -> (section alias, section field name, key alias)
ENV_OVERRIDES = {
    'ROCKETDRIVE_FOLDERS': ('BackupSettings', 'backup_settings', 'Folders'),
    'ROCKETDRIVE_ALLOWED_EXTENSIONS': ('BackupSettings', 'backup_settings', 'AllowedExtensions'),
    'ROCKETDRIVE_TARGET_FOLDER_NAME': ('BackupSettings', 'backup_settings', 'TargetDriveFolderName'),
    'ROCKETDRIVE_CHECKPOINT_PATH': ('BackupSettings', 'backup_settings', 'LastUploadedFileTimePath'),
    'ROCKETDRIVE_OVERWRITE_EXISTING': ('BackupSettings', 'backup_settings', 'OverwriteExisting'),
    'ROCKETDRIVE_UPLOAD_RETRY_COUNT': ('BackupSettings', 'backup_settings', 'UploadRetryCount'),
    'ROCKETDRIVE_STATUS_FILE_PATH': ('BackupSettings', 'backup_settings', 'StatusFilePath'),
    'ROCKETDRIVE_SMTP_PASSWORD': ('Smtp', 'smtp', 'Password'),
    'ROCKETDRIVE_TELEGRAM_BOT_TOKEN': ('Telegram', 'telegram', 'BotToken'),
    'ROCKETDRIVE_TELEGRAM_CHAT_ID': ('Telegram', 'telegram', 'ChatId'),
    'ROCKETDRIVE_GOOGLE_CREDENTIALS_PATH': ('GoogleDrive', 'google_drive', 'CredentialsPath'),
}

BOOLEAN_OVERRIDES = {'ROCKETDRIVE_OVERWRITE_EXISTING'}


class ConfigLoader:
    """Loads and validates configuration from various sources."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, file_path: Union[str, Path]) -> AgentConfig:
        """Load configuration from JSON or YAML file.

        Args:
            file_path: Path to configuration file

        Returns:
            Validated AgentConfig object

        Raises:
            ConfigurationError: If file cannot be loaded or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8-sig') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {file_path}: {e}")

        config = self.load_from_dict(data or {})

        self.logger.info(
            "Configuration loaded successfully",
            file_path=str(file_path),
            folders_count=len(config.backup_settings.folders)
        )

        return config

    def load_from_dict(self, data: Dict[str, Any]) -> AgentConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration data as dictionary

        Returns:
            Validated AgentConfig object
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        try:
            data = self._apply_env_overrides(data)
            return AgentConfig(**data)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

    def save_to_file(self, config: AgentConfig, file_path: Union[str, Path], format: str = 'json'):
        """Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: Output format ('yaml' or 'json')
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.dict(by_alias=True)

        def convert_enums(obj):
            if isinstance(obj, dict):
                return {k: convert_enums(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_enums(v) for v in obj]
            elif hasattr(obj, 'value'):  # Enum objects
                return obj.value
            else:
                return obj

        data = convert_enums(data)

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if format.lower() == 'yaml':
                    yaml.dump(data, f, default_flow_style=False, indent=2, allow_unicode=True, sort_keys=False)
                elif format.lower() == 'json':
                    json.dump(data, f, indent=2, default=str)
                else:
                    raise ConfigurationError(f"Unsupported format: {format}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")

        self.logger.info("Configuration saved successfully", file_path=str(file_path))

    def create_default_config(self) -> AgentConfig:
        """Configuration used when no settings file exists: nothing to back up."""
        self.logger.info("Created default configuration")
        return AgentConfig()

    def create_example_config(self) -> AgentConfig:
        return EXAMPLE_CONFIG.copy(deep=True)

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration data.

        Environment variables use the format ROCKETDRIVE_<KEY>, for example
        ROCKETDRIVE_FOLDERS (separated by os.pathsep) or
        ROCKETDRIVE_TELEGRAM_BOT_TOKEN.
        """
        data = {**data}
        applied = []

        for env_name, (section_alias, section_field, key) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue

            if env_name == 'ROCKETDRIVE_FOLDERS':
                value: Any = [part for part in raw.split(os.pathsep) if part.strip()]
            elif env_name in BOOLEAN_OVERRIDES:
                value = raw.lower() in ['true', '1', 'yes']
            else:
                value = raw

            section_key = section_field if section_field in data and section_alias not in data else section_alias
            section = dict(data.get(section_key) or {})
            section[key] = value
            data[section_key] = section
            applied.append(env_name)

        if applied:
            self.logger.info("Applied environment variable overrides", overrides=applied)

        return data

    def validate_config(self, config: AgentConfig) -> List[str]:
        """Validate configuration and return list of warnings/issues.

        Args:
            config: Configuration to validate

        Returns:
            List of validation warnings
        """
        warnings = []
        backup = config.backup_settings

        if not backup.folders:
            warnings.append("No folders configured for backup")

        for folder in backup.folders:
            if not os.path.isdir(folder):
                warnings.append(f"Configured folder does not exist: {folder}")

        if len(set(backup.folders)) != len(backup.folders):
            warnings.append("Duplicate folders configured")

        if config.smtp.enabled and not (config.smtp.host and config.smtp.from_address and config.smtp.to_address):
            warnings.append("SMTP notifications enabled but Host, From or To is missing")

        if config.telegram.enabled and not (config.telegram.bot_token and config.telegram.chat_id):
            warnings.append("Telegram notifications enabled but BotToken or ChatId is missing")

        if config.schedule.type == ScheduleType.CRON and not config.schedule.cron_expression:
            warnings.append("Cron schedule selected but no CronExpression configured")

        if (backup.notify.on_success or backup.notify.on_failure) and not (config.smtp.enabled or config.telegram.enabled):
            warnings.append("Notifications requested but no delivery channel is enabled")

        if warnings:
            self.logger.warning("Configuration validation warnings", warnings=warnings)
        else:
            self.logger.info("Configuration validation passed")

        return warnings


def load_config_from_env(config_file: Optional[str] = None) -> AgentConfig:
    """Load configuration from an explicit path, the environment or default files.

    Looks for configuration files in this order:
    1. The ``config_file`` argument
    2. ROCKETDRIVE_CONFIG_FILE environment variable
    3. ./appsettings.json, ./appsettings.yaml, ./appsettings.yml
    4. The same names under ./config/

    If no file is found, returns an empty default configuration.
    """
    loader = ConfigLoader()
    logger = get_logger("load_config_from_env")

    if config_file:
        return loader.load_from_file(config_file)

    env_file = get_settings().config_file or os.getenv('ROCKETDRIVE_CONFIG_FILE')
    if env_file:
        if os.path.exists(env_file):
            return loader.load_from_file(env_file)
        else:
            logger.warning("Specified config file not found", file=env_file)

    for file_path in DEFAULT_CONFIG_FILES:
        if os.path.exists(file_path):
            logger.info("Found configuration file", file=file_path)
            return loader.load_from_file(file_path)

    logger.warning("No configuration file found, using defaults")
    return loader.create_default_config()
