"""Settings for rutt, validated with pydantic and persisted as JSON."""

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import (
    ConfigurationError,
    FileSystemError,
    InvalidConfigError,
    MissingConfigError,
)
from .logging import get_logger, log_call
from .paths import CONFIG_PATH

logger = get_logger(__name__)

CONFIG_ENV_VAR = "RUTT_CONFIG"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AccountConfig(BaseModel):
    """The one IMAP account and mailbox rutt reads."""

    imap_server: str = "imap.gmail.com"
    imap_port: int = 993
    username: str = ""
    app_password: Optional[SecretStr] = None
    mailbox: str = "INBOX"

    @field_validator("imap_port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"port out of range: {value}")
        return value


class FetchConfig(BaseModel):
    """How many messages to fetch and how long to wait."""

    window_size: int = Field(default=200, ge=1)
    connect_timeout: float = Field(default=30.0, gt=0)  # in seconds
    command_timeout: float = Field(default=60.0, gt=0)  # in seconds


class FeaturesConfig(BaseModel):
    sync_read_flags: bool = False


class UIConfig(BaseModel):
    theme: str = "textual-dark"
    sender_width: int = Field(default=25, ge=4)
    subject_width: int = Field(default=100, ge=4)


class LoggingConfig(BaseModel):
    log_level: str = "INFO"
    log_to_file: bool = True
    # "partial" keeps the first and last three characters of masked values
    mask_strategy: Literal["full", "partial"] = "full"

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {value}")
        return level


class AppConfig(BaseModel):
    """Top-level config file layout."""

    version: str = "0.1.0"
    account: AccountConfig = Field(default_factory=AccountConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def default_config_path() -> Path:
    """``$RUTT_CONFIG`` when set, otherwise ``~/.rutt/config.json``."""
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    return Path(override).expanduser() if override else CONFIG_PATH


def _invalid_fields(error: ValidationError) -> str:
    # pydantic's own message echoes input values, app_password included
    return ", ".join(".".join(map(str, item["loc"])) for item in error.errors())


class ConfigManager:
    """Loads, validates and saves the JSON config file.

    A missing file is created with defaults. Anything unreadable or
    off-schema raises ``InvalidConfigError`` naming the offending fields.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.path = Path(config_path) if config_path else default_config_path()
        self.config = self._read() if self.path.exists() else self._create()
        logger.info(f"Configuration loaded from {self.path}")

    def _create(self) -> AppConfig:
        logger.info(f"Writing default configuration to {self.path}")
        config = AppConfig()
        self._write(config)
        return config

    def _read(self) -> AppConfig:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Failed to read configuration file: {self.path}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Config file is not JSON: line {e.lineno}, column {e.colno}")
            raise InvalidConfigError(
                f"{self.path} is not valid JSON (line {e.lineno}, column {e.colno})"
            ) from e

        if not isinstance(data, dict):
            raise InvalidConfigError(f"{self.path} must contain a JSON object")

        try:
            return AppConfig.model_validate(data)
        except ValidationError as e:
            fields = _invalid_fields(e)
            logger.error(f"Config file has invalid fields: {fields}")
            raise InvalidConfigError(f"Invalid values for: {fields}") from e

    def _write(self, config: AppConfig):
        data = config.model_dump(mode="json")
        # SecretStr dumps masked; store what the user actually wrote
        secret = config.account.app_password
        data["account"]["app_password"] = secret.get_secret_value() if secret else None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Failed to write configuration file: {self.path}") from e
        logger.debug(f"Configuration saved to {self.path}")

    @log_call
    def set_config(self, key_path: str, value: Any, persist: bool = True):
        """Set ``section.key`` to ``value``; ``persist=False`` keeps it in memory only."""
        *parents, leaf = key_path.split(".")
        target = self.config
        for name in parents:
            if not isinstance(getattr(target, name, None), BaseModel):
                raise MissingConfigError(f"No config section '{name}' in '{key_path}'")
            target = getattr(target, name)

        if leaf not in type(target).model_fields:
            raise MissingConfigError(f"No config key '{leaf}' in '{key_path}'")

        try:
            setattr(target, leaf, value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Could not set '{key_path}': {e}") from e

        if persist:
            self._write(self.config)
        logger.info(f"Config key '{key_path}' updated")
