"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from soundboard import config as config_module
from soundboard.config import ConfigError, read_config
from soundboard.settings import (
    SoundboardSettings,
    load_settings,
    require_discord,
    require_sounds_directory,
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "DISCORD_TOKEN",
        "SOUNDS_DIRECTORY",
        "SOUNDBOARD__DISCORD_TOKEN",
        "SOUNDBOARD__SOUNDS_DIRECTORY",
        "SOUNDBOARD__COMMAND_PREFIX",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        config_module, "HOME_CONFIG_PATH", tmp_path / "home" / "soundboard.toml"
    )


class TestLoadSettings:
    """Test load_settings."""

    def test_environment_only(
        self, monkeypatch: pytest.MonkeyPatch, sounds_dir: Path
    ) -> None:
        monkeypatch.setenv("DISCORD_TOKEN", " secret ")
        monkeypatch.setenv("SOUNDS_DIRECTORY", str(sounds_dir))

        settings, _ = load_settings()

        assert settings.discord_token is not None
        assert settings.discord_token.get_secret_value() == "secret"
        assert settings.sounds_directory == sounds_dir
        assert settings.command_prefix == "~"
        assert settings.console is True

    def test_toml_file(self, tmp_path: Path, sounds_dir: Path) -> None:
        cfg = tmp_path / "soundboard.toml"
        cfg.write_text(
            'discord_token = "abc"\n'
            f'sounds_directory = "{sounds_dir.as_posix()}"\n'
            'command_prefix = "!"\n'
            "guild_id = 42\n"
            "console = false\n",
            encoding="utf-8",
        )

        settings, path = load_settings(cfg)

        assert path == cfg
        assert settings.command_prefix == "!"
        assert settings.guild_id == 42
        assert settings.console is False
        assert require_discord(settings, path) == ("abc", sounds_dir)

    def test_environment_overrides_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        cfg = tmp_path / "soundboard.toml"
        cfg.write_text('discord_token = "from-file"\n', encoding="utf-8")
        monkeypatch.setenv("DISCORD_TOKEN", "from-env")

        settings, _ = load_settings(cfg)

        assert settings.discord_token is not None
        assert settings.discord_token.get_secret_value() == "from-env"

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Missing config file"):
            load_settings(tmp_path / "nope.toml")

    def test_malformed_toml(self, tmp_path: Path) -> None:
        cfg = tmp_path / "soundboard.toml"
        cfg.write_text("discord_token = \n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Malformed TOML"):
            load_settings(cfg)

    def test_invalid_value(self, tmp_path: Path) -> None:
        cfg = tmp_path / "soundboard.toml"
        cfg.write_text('command_prefix = "  "\n', encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid config"):
            load_settings(cfg)


class TestReadConfig:
    """Test read_config."""

    def test_directory_is_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not a file"):
            read_config(tmp_path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Missing config file"):
            read_config(tmp_path / "missing.toml")


class TestRequireDiscord:
    """Test require_discord and require_sounds_directory."""

    def test_missing_token(self, tmp_path: Path, sounds_dir: Path) -> None:
        settings = SoundboardSettings(sounds_directory=sounds_dir)
        with pytest.raises(ConfigError, match="Missing Discord token"):
            require_discord(settings, tmp_path / "soundboard.toml")

    def test_missing_sounds_directory(self, tmp_path: Path) -> None:
        settings = SoundboardSettings(discord_token="abc")
        with pytest.raises(ConfigError, match="Missing sounds directory"):
            require_discord(settings, tmp_path / "soundboard.toml")

    def test_sounds_directory_must_exist(self, tmp_path: Path) -> None:
        settings = SoundboardSettings(
            discord_token="abc", sounds_directory=tmp_path / "gone"
        )
        with pytest.raises(ConfigError, match="does not exist"):
            require_discord(settings, tmp_path / "soundboard.toml")

    def test_relative_directory_resolves_against_config(self, tmp_path: Path) -> None:
        settings = SoundboardSettings(sounds_directory="sounds")
        resolved = require_sounds_directory(settings, tmp_path / "soundboard.toml")
        assert resolved == tmp_path / "sounds"

    def test_token_is_hidden_in_repr(self) -> None:
        settings = SoundboardSettings(discord_token="abc")
        assert "abc" not in repr(settings)
        assert settings.model_dump()["discord_token"] == "abc"
