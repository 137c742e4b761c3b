from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    ValidationError,
    field_serializer,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import ConfigError, read_config, resolve_config_path


class SoundboardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="SOUNDBOARD__",
        env_nested_delimiter="__",
        populate_by_name=True,
    )

    discord_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "discord_token", "SOUNDBOARD__DISCORD_TOKEN", "DISCORD_TOKEN"
        ),
    )
    sounds_directory: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "sounds_directory", "SOUNDBOARD__SOUNDS_DIRECTORY", "SOUNDS_DIRECTORY"
        ),
    )
    command_prefix: str = "~"
    guild_id: int | None = None
    console: bool = True

    @field_validator("discord_token", mode="before")
    @classmethod
    def _validate_token(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("discord_token must be a string")
        cleaned = value.strip()
        return cleaned or None

    @field_validator("sounds_directory", mode="before")
    @classmethod
    def _validate_sounds_directory(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            cleaned = value.strip()
            if not cleaned:
                return None
            return Path(cleaned).expanduser()
        return value

    @field_validator("command_prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> Any:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("command_prefix must be a non-empty string")
        return value.strip()

    @field_validator("guild_id", mode="before")
    @classmethod
    def _validate_guild_id(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError("guild_id must be an integer")
        return value

    @field_serializer("discord_token")
    def _dump_token(self, value: SecretStr | None) -> str | None:
        return value.get_secret_value() if value else None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(
    path: str | Path | None = None,
) -> tuple[SoundboardSettings, Path]:
    """Load settings from the environment and, when present, the TOML file.

    The file is optional: ``DISCORD_TOKEN`` and ``SOUNDS_DIRECTORY`` alone are
    enough to run.
    """
    cfg_path = resolve_config_path(path)
    if cfg_path.exists():
        # surfaces malformed TOML as a ConfigError before pydantic sees it
        read_config(cfg_path)
        return _load_settings_from_path(cfg_path), cfg_path
    if path is not None:
        raise ConfigError(f"Missing config file {cfg_path}.")
    try:
        return SoundboardSettings(), cfg_path
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def require_discord(
    settings: SoundboardSettings, config_path: Path
) -> tuple[str, Path]:
    token = settings.discord_token
    if token is None or not token.get_secret_value().strip():
        raise ConfigError(
            f"Missing Discord token; set DISCORD_TOKEN or `discord_token` in {config_path}."
        )
    sounds_dir = require_sounds_directory(settings, config_path)
    if not sounds_dir.is_dir():
        raise ConfigError(f"Sounds directory {sounds_dir} does not exist.")
    return token.get_secret_value().strip(), sounds_dir


def require_sounds_directory(
    settings: SoundboardSettings, config_path: Path
) -> Path:
    sounds_dir = settings.sounds_directory
    if sounds_dir is None:
        raise ConfigError(
            "Missing sounds directory; set SOUNDS_DIRECTORY or "
            f"`sounds_directory` in {config_path}."
        )
    if not sounds_dir.is_absolute():
        sounds_dir = config_path.parent / sounds_dir
    return sounds_dir


def _load_settings_from_path(cfg_path: Path) -> SoundboardSettings:
    cfg = dict(SoundboardSettings.model_config)
    cfg["toml_file"] = cfg_path
    Bound = type(
        "SoundboardSettingsBound",
        (SoundboardSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
    except Exception as exc:  # pragma: no cover - safety net
        raise ConfigError(f"Failed to load config {cfg_path}: {exc}") from exc
