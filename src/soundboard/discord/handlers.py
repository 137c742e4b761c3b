"""Prefix and slash command handlers for Discord."""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from ..commands import CommandDispatcher, parse_command
from ..logging import bind_run_context, clear_context, get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .client import SoundboardBotClient

logger = get_logger(__name__)

MAX_REPLY_CHARS = 1900


def clip_reply(text: str, limit: int = MAX_REPLY_CHARS) -> str:
    if len(text) <= limit:
        return text
    cut = text.rfind("\n", 0, limit)
    if cut <= 0:
        cut = limit
    return text[:cut] + "\n…"


def author_voice_channel_id(author: discord.abc.User) -> int | None:
    """Voice channel the author is currently connected to, if any."""
    if not isinstance(author, discord.Member):
        return None
    voice = author.voice
    if voice is None or voice.channel is None:
        return None
    return voice.channel.id


def build_message_handler(
    dispatcher: CommandDispatcher, *, prefix: str
) -> Callable[[discord.Message], Awaitable[None]]:
    async def handle_message(message: discord.Message) -> None:
        """Handle an incoming Discord message."""
        if message.author.bot:
            return
        parsed = parse_command(message.content or "", prefix)
        if parsed is None:
            return
        verb, args = parsed

        # Guild-only, like the slash commands
        if message.guild is None:
            return

        guild_id = message.guild.id
        bind_run_context(guild_id=guild_id, command=verb)
        try:
            logger.debug("message.command", author=message.author.name, args=args)
            reply = await dispatcher.dispatch(
                verb,
                args,
                room=guild_id,
                channel=author_voice_channel_id(message.author),
            )
            if reply is None:
                logger.debug("message.unknown_command")
                return
            try:
                await message.reply(clip_reply(reply), mention_author=False)
            except discord.HTTPException as e:
                logger.error("message.reply_failed", error=str(e))
        except Exception:
            logger.exception("message.handler_failed")
        finally:
            clear_context()

    return handle_message


def register_slash_commands(
    bot: SoundboardBotClient, dispatcher: CommandDispatcher
) -> None:
    """Register slash commands with the bot."""
    pycord_bot = bot.bot

    async def respond(
        ctx: discord.ApplicationContext, verb: str, args: str = ""
    ) -> None:
        if ctx.guild is None:
            await ctx.respond(
                "This command can only be used in a server.", ephemeral=True
            )
            return
        bind_run_context(guild_id=ctx.guild.id, command=verb)
        try:
            await ctx.defer()
            reply = await dispatcher.dispatch(
                verb,
                args,
                room=ctx.guild.id,
                channel=author_voice_channel_id(ctx.author),
            )
            await ctx.respond(clip_reply(reply or "Unknown command"))
        except discord.HTTPException as e:
            logger.error("slash.respond_failed", error=str(e))
        finally:
            clear_context()

    @pycord_bot.slash_command(name="ping", description="Check that the bot is alive")
    async def ping_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "ping")

    @pycord_bot.slash_command(name="join", description="Join your voice channel")
    async def join_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "join")

    @pycord_bot.slash_command(name="leave", description="Leave the voice channel")
    async def leave_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "leave")

    @pycord_bot.slash_command(name="mute", description="Mute the bot")
    async def mute_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "mute")

    @pycord_bot.slash_command(name="unmute", description="Unmute the bot")
    async def unmute_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "unmute")

    @pycord_bot.slash_command(name="deafen", description="Deafen the bot")
    async def deafen_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "deafen")

    @pycord_bot.slash_command(name="undeafen", description="Undeafen the bot")
    async def undeafen_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "undeafen")

    @pycord_bot.slash_command(name="sounds", description="List available sounds")
    async def sounds_command(ctx: discord.ApplicationContext) -> None:
        await respond(ctx, "sounds")

    @pycord_bot.slash_command(name="play", description="Play a sound by name")
    async def play_command(
        ctx: discord.ApplicationContext,
        name: str = discord.Option(description="Start of the sound file name"),
    ) -> None:
        await respond(ctx, "play", name)
