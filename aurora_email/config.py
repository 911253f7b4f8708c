"""Configuration management for the email second factor."""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError
from .models import DEFAULT_CODE_LENGTH, MailServerConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/aurora/email.conf")
DEFAULT_DIRECTORY_PATH = Path("/etc/aurora/directory.db")


class AuroraSettings(BaseSettings):
    """Module settings read from the key=value configuration file."""

    mail_server_host: str
    mail_server_user: str
    mail_server_pass: str = Field(repr=False)
    code_length: int = DEFAULT_CODE_LENGTH
    permit_bypass: bool = False
    directory_path: Path = DEFAULT_DIRECTORY_PATH
    smtp_timeout: float | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Only the configuration file counts; the caller's environment must not.
        return (init_settings,)

    @field_validator("code_length")
    @classmethod
    def _positive_length(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("code_length must be a positive integer")
        return value

    @field_validator("smtp_timeout", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    def mail_server(self) -> MailServerConfig:
        """Credentials for one submission; TLS is always mandatory."""
        return MailServerConfig(
            host=self.mail_server_host,
            username=self.mail_server_user,
            password=self.mail_server_pass,
            require_tls=True,
        )


class SettingsProvider:
    """Reads settings from one file each time :meth:`load` is called."""

    def __init__(self, path: Path | str = DEFAULT_CONFIG_PATH) -> None:
        self.path = Path(path)

    def load(self) -> AuroraSettings:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = dotenv_values(stream=handle, interpolate=False)
        except UnicodeDecodeError as exc:
            raise ConfigError("[ERROR] Unable to read configuration", str(exc)) from exc
        except OSError as exc:
            raise ConfigError("[ERROR] Unable to open configuration", str(exc)) from exc

        values = {key.lower(): value for key, value in raw.items() if value is not None}
        try:
            settings = AuroraSettings(**values)
        except ValidationError as exc:
            missing = [
                str(error["loc"][0]) for error in exc.errors() if error["type"] == "missing"
            ]
            if missing:
                logger.error("Configuration %s lacks %s", self.path, ", ".join(missing))
                raise ConfigError(
                    "[ERROR] Mail server configuration not found", str(exc)
                ) from exc
            logger.error("Configuration %s is invalid: %s", self.path, exc)
            raise ConfigError("[ERROR] Unable to read configuration", str(exc)) from exc

        logger.debug(
            "Loaded settings from %s (code_length=%s, permit_bypass=%s)",
            self.path,
            settings.code_length,
            settings.permit_bypass,
        )
        return settings
