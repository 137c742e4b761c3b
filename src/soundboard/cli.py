from __future__ import annotations

from pathlib import Path

import anyio
import typer
from rich import box
from rich.console import Console
from rich.table import Table

from . import __version__
from .commands import CommandDispatcher
from .config import ConfigError
from .logging import get_logger, setup_logging
from .loop import run_main_loop
from .registry import SessionRegistry
from .settings import (
    SoundboardSettings,
    load_settings,
    require_discord,
    require_sounds_directory,
)
from .sounds import list_sounds, resolve

logger = get_logger(__name__)

_CONFIG_PATH_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to soundboard.toml (default: ~/.soundboard/soundboard.toml).",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _load_or_exit(config: Path | None) -> tuple[SoundboardSettings, Path]:
    try:
        return load_settings(config)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _sounds_dir_or_exit(config: Path | None) -> Path:
    settings, config_path = _load_or_exit(config)
    try:
        return require_sounds_directory(settings, config_path)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Discord soundboard: play sounds by name from chat or the console."""


def run(
    config: Path | None = _CONFIG_PATH_OPTION,
    debug: bool = typer.Option(False, "--debug", help="Verbose logging."),
    no_console: bool = typer.Option(
        False, "--no-console", help="Do not read sound names from stdin."
    ),
) -> None:
    """Connect to Discord and serve commands until `exit` or Ctrl-C."""
    setup_logging(debug=debug)
    settings, config_path = _load_or_exit(config)
    try:
        token, sounds_dir = require_discord(settings, config_path)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    from .discord.client import SoundboardBotClient
    from .discord.handlers import build_message_handler, register_slash_commands

    registry = SessionRegistry()
    dispatcher = CommandDispatcher(registry, sounds_dir)
    bot = SoundboardBotClient(token, registry, guild_id=settings.guild_id)
    bot.set_message_handler(
        build_message_handler(dispatcher, prefix=settings.command_prefix)
    )
    register_slash_commands(bot, dispatcher)

    console = settings.console and not no_console
    logger.info(
        "soundboard.starting",
        sounds_dir=str(sounds_dir),
        prefix=settings.command_prefix,
        console=console,
    )

    async def _run() -> None:
        await run_main_loop(bot, dispatcher, console=console)

    anyio.run(_run)


def sounds(config: Path | None = _CONFIG_PATH_OPTION) -> None:
    """List the sound files the bot can play."""
    sounds_dir = _sounds_dir_or_exit(config)
    found = list_sounds(sounds_dir)
    console = Console()
    if not found:
        console.print(f"[dim]no sounds in {sounds_dir}[/]")
        return
    table = Table(show_header=True, header_style="bold", box=box.SIMPLE)
    table.add_column("sound")
    table.add_column("size", justify="right")
    for sound in found:
        table.add_row(sound.name, f"{sound.path.stat().st_size:,}")
    console.print(table)


def find(
    fragment: str = typer.Argument(..., help="Start of a sound file name."),
    config: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """Show which file `play FRAGMENT` would pick."""
    sounds_dir = _sounds_dir_or_exit(config)
    sound = resolve(fragment, sounds_dir)
    if sound is None:
        typer.echo("no matching file found", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(sound.path))


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Discord soundboard bot.",
    )
    app.callback()(app_main)
    app.command(name="run")(run)
    app.command(name="sounds")(sounds)
    app.command(name="find")(find)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
