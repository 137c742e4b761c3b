"""Discord API client wrapper."""

from __future__ import annotations

import contextlib
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import discord

from ..logging import get_logger
from ..registry import Room, SessionRegistry
from .voice import DiscordVoiceConnector

if TYPE_CHECKING:
    from collections.abc import Coroutine

    MessageHandler = Callable[[discord.Message], Coroutine[Any, Any, None]]

logger = get_logger(__name__)


class SoundboardBotClient:
    """Wrapper around Pycord Bot for the soundboard."""

    def __init__(
        self,
        token: str,
        registry: SessionRegistry,
        *,
        guild_id: int | None = None,
    ) -> None:
        self._token = token
        self._registry = registry
        self._guild_id = guild_id
        self._message_handler: MessageHandler | None = None
        # Defer bot creation until inside async context
        self._bot: discord.Bot | None = None
        self._closed = False

    def _ensure_bot(self) -> discord.Bot:
        """Create the bot if not already created. Must be called from async context."""
        if self._bot is not None:
            return self._bot

        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.messages = True
        intents.voice_states = True

        debug_guilds = [self._guild_id] if self._guild_id else None
        self._bot = discord.Bot(intents=intents, debug_guilds=debug_guilds)

        @self._bot.event
        async def on_ready() -> None:
            await self.publish_rooms()
            logger.info(
                "bot.ready",
                user=self._bot.user.name if self._bot.user else "unknown",
            )

        @self._bot.event
        async def on_guild_join(guild: discord.Guild) -> None:
            await self.publish_rooms()

        @self._bot.event
        async def on_guild_remove(guild: discord.Guild) -> None:
            await self.publish_rooms()

        @self._bot.event
        async def on_voice_state_update(
            member: discord.Member,
            before: discord.VoiceState,
            after: discord.VoiceState,
        ) -> None:
            await self.handle_voice_state_update(member, before, after)

        @self._bot.event
        async def on_message(message: discord.Message) -> None:
            assert self._bot is not None
            if message.author == self._bot.user:
                return
            if self._message_handler is not None:
                await self._message_handler(message)

        return self._bot

    @property
    def bot(self) -> discord.Bot:
        """Get the underlying Pycord bot. Creates it if needed."""
        return self._ensure_bot()

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    def rooms(self) -> list[Room]:
        """Guilds the bot can see, in gateway order."""
        if self._bot is None:
            return []
        return [Room(id=guild.id, name=guild.name) for guild in self._bot.guilds]

    async def publish_rooms(self) -> None:
        await self._registry.set_connection_context(
            DiscordVoiceConnector(self), self.rooms()
        )

    async def handle_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Forget a guild's session when the bot is dropped from voice."""
        if self._bot is None or self._bot.user is None:
            return
        if member.id != self._bot.user.id:
            return
        if before.channel is not None and after.channel is None:
            removed = await self._registry.remove(member.guild.id)
            if removed is not None:
                logger.info("voice.dropped", guild_id=member.guild.id)

    async def run(self) -> None:
        """Connect to the gateway and block until the bot is closed."""
        bot = self._ensure_bot()
        try:
            await bot.start(self._token)
        except RuntimeError as e:
            # Suppress "Session is closed" error during shutdown
            if "Session is closed" not in str(e):
                raise

    async def close(self) -> None:
        """Close the bot connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._registry.clear_connection_context()
        if self._bot is not None:
            with contextlib.suppress(discord.HTTPException):
                await self._bot.close()

    def get_guild(self, guild_id: int) -> discord.Guild | None:
        if self._bot is None:
            return None
        return self._bot.get_guild(guild_id)
