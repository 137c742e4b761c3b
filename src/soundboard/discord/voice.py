"""Voice sessions backed by Pycord voice clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import anyio
import discord

from ..logging import get_logger
from ..voice import ChannelId, RoomId, StreamOpenError

if TYPE_CHECKING:
    from .client import SoundboardBotClient

logger = get_logger(__name__)

__all__ = ["DiscordVoiceConnector", "DiscordVoiceSession"]

FFMPEG_OPTIONS = "-vn"


@dataclass(slots=True)
class DiscordVoiceSession:
    """One guild's voice connection.

    Two wrappers around the same voice client compare equal.
    """

    voice_client: discord.VoiceClient
    _muted: bool = field(default=False, compare=False)
    _deafened: bool = field(default=False, compare=False)

    @property
    def channel_id(self) -> ChannelId | None:
        channel = self.voice_client.channel
        return channel.id if channel is not None else None

    def _open_source(self, path: Path) -> discord.AudioSource:
        try:
            return discord.FFmpegPCMAudio(str(path), options=FFMPEG_OPTIONS)
        except discord.ClientException as exc:
            raise StreamOpenError(str(exc)) from exc
        except OSError as exc:
            raise StreamOpenError(str(exc)) from exc

    async def play(self, path: Path) -> None:
        source = await anyio.to_thread.run_sync(self._open_source, path)
        if self.voice_client.is_playing() or self.voice_client.is_paused():
            self.voice_client.stop()

        def _after_play(error: Exception | None) -> None:
            if error is not None:
                logger.error("voice.play_error", sound=path.name, error=str(error))
            else:
                logger.debug("voice.play_done", sound=path.name)

        try:
            self.voice_client.play(source, after=_after_play)
        except discord.ClientException as exc:
            source.cleanup()
            raise StreamOpenError(str(exc)) from exc

    async def _update_voice_state(self) -> None:
        guild = self.voice_client.guild
        await guild.change_voice_state(
            channel=self.voice_client.channel,
            self_mute=self._muted,
            self_deaf=self._deafened,
        )

    async def mute(self, muted: bool) -> None:
        previous = self._muted
        self._muted = muted
        try:
            await self._update_voice_state()
        except Exception:
            self._muted = previous
            raise

    async def deafen(self, deafened: bool) -> None:
        previous = self._deafened
        self._deafened = deafened
        try:
            await self._update_voice_state()
        except Exception:
            self._deafened = previous
            raise

    def is_muted(self) -> bool:
        return self._muted

    def is_deafened(self) -> bool:
        return self._deafened

    async def leave(self) -> None:
        if self.voice_client.is_playing():
            self.voice_client.stop()
        await self.voice_client.disconnect(force=True)
        logger.info("voice.disconnected", guild_id=self.voice_client.guild.id)


class DiscordVoiceConnector:
    """Connects the bot to voice channels; published to the registry on ready."""

    def __init__(self, bot: SoundboardBotClient) -> None:
        self._bot = bot

    async def join(self, room_id: RoomId, channel_id: ChannelId) -> DiscordVoiceSession:
        guild = self._bot.get_guild(room_id)
        if guild is None:
            raise LookupError(f"unknown guild {room_id}")
        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            raise LookupError(f"channel {channel_id} is not a voice channel")

        current = guild.voice_client
        if isinstance(current, discord.VoiceClient) and current.is_connected():
            if current.channel is None or current.channel.id != channel_id:
                # move_to resets both self flags
                await current.move_to(channel)
                logger.info("voice.moved", guild_id=room_id, channel_id=channel_id)
                return DiscordVoiceSession(current)
            muted, deafened = _self_voice_flags(guild)
            return DiscordVoiceSession(current, _muted=muted, _deafened=deafened)

        voice_client = await channel.connect()
        logger.info("voice.connected", guild_id=room_id, channel_id=channel_id)
        return DiscordVoiceSession(voice_client)


def _self_voice_flags(guild: discord.Guild) -> tuple[bool, bool]:
    """Self-mute and self-deafen flags the bot currently holds in ``guild``."""
    me = guild.me
    state = me.voice if me is not None else None
    if state is None:
        return False, False
    return bool(state.self_mute), bool(state.self_deaf)
