"""Capabilities the dispatcher needs from a voice connection.

The registry and the dispatcher only talk to these protocols; the pycord
implementation lives in :mod:`soundboard.discord.voice`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

RoomId = int
ChannelId = int


class SoundboardError(RuntimeError):
    pass


class StreamOpenError(SoundboardError):
    """The audio file could not be opened for streaming."""


class VoiceSession(Protocol):
    @property
    def channel_id(self) -> ChannelId | None: ...

    async def play(self, path: Path) -> None:
        """Start streaming ``path``, replacing whatever is playing.

        Returns once the stream is handed off, not when it finishes.
        """
        ...

    async def mute(self, muted: bool) -> None: ...

    async def deafen(self, deafened: bool) -> None: ...

    def is_muted(self) -> bool: ...

    def is_deafened(self) -> bool: ...

    async def leave(self) -> None: ...


class VoiceConnector(Protocol):
    async def join(self, room_id: RoomId, channel_id: ChannelId) -> VoiceSession: ...
