"""Soundboard commands shared by the chat and console sources."""

from __future__ import annotations

from pathlib import Path

import anyio

from .logging import get_logger
from .registry import NotReadyError, SessionRegistry
from .sounds import canonicalize, list_sounds, resolve_async
from .voice import ChannelId, RoomId, StreamOpenError, VoiceSession

logger = get_logger(__name__)

__all__ = ["COMMANDS", "CommandDispatcher", "parse_command"]

COMMANDS = (
    "deafen",
    "join",
    "leave",
    "mute",
    "ping",
    "play",
    "sounds",
    "undeafen",
    "unmute",
)

NOT_READY = "Not connected yet"


def parse_command(text: str, prefix: str) -> tuple[str, str] | None:
    """Split ``"~play kutya ugatás"`` into ``("play", "kutya ugatás")``."""
    stripped = text.strip()
    if not stripped.startswith(prefix):
        return None
    body = stripped[len(prefix) :]
    token, _, rest = body.partition(" ")
    if not token:
        return None
    return token.lower(), rest.strip()


class CommandDispatcher:
    """Runs one command against the registry and returns the reply text.

    None of the methods raise for user or collaborator errors; every failure
    becomes a reply.
    """

    def __init__(self, registry: SessionRegistry, sounds_dir: Path) -> None:
        self._registry = registry
        self._sounds_dir = sounds_dir

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def sounds_dir(self) -> Path:
        return self._sounds_dir

    async def dispatch(
        self,
        verb: str,
        args: str = "",
        *,
        room: RoomId | None,
        channel: ChannelId | None = None,
    ) -> str | None:
        """Route a parsed command; unknown verbs return None."""
        if verb == "ping":
            return await self.ping()
        if verb == "sounds":
            return await self.sounds()
        if verb == "play":
            return await self.play(args, room=room)
        if verb not in COMMANDS:
            return None
        if room is None:
            return "This command can only be used in a server."
        if verb == "join":
            return await self.join(room, channel)
        if verb == "leave":
            return await self.leave(room)
        if verb == "mute":
            return await self.mute(room)
        if verb == "unmute":
            return await self.unmute(room)
        if verb == "deafen":
            return await self.deafen(room)
        if verb == "undeafen":
            return await self.undeafen(room)
        return None

    async def ping(self) -> str:
        return "Pong!"

    async def sounds(self) -> str:
        found = await anyio.to_thread.run_sync(list_sounds, self._sounds_dir)
        if not found:
            return "No sounds found"
        return "\n".join(sound.name for sound in found)

    async def join(self, room: RoomId, channel: ChannelId | None) -> str:
        if channel is None:
            return "Not in a voice channel"
        try:
            connector = await self._registry.connection_context()
        except NotReadyError:
            return NOT_READY

        existing = await self._registry.get(room)
        if existing is not None and existing.channel_id == channel:
            return "Already in voice channel"

        try:
            session = await connector.join(room, channel)
        except Exception as exc:
            logger.exception("join.failed", room_id=room, channel_id=channel)
            return f"Failed: {exc}"

        if existing is not None:
            # moved to another channel within the same room
            await self._registry.put(room, session)
            if existing != session:
                await self._discard(room, existing)
            logger.info("join.moved", room_id=room, channel_id=channel)
            return "Joined voice channel"

        stored = await self._registry.put_if_absent(room, session)
        if stored != session:
            # lost a race with a concurrent join for the same room
            logger.info("join.duplicate", room_id=room, channel_id=channel)
            await self._discard(room, session)
            return "Already in voice channel"
        logger.info("join.ok", room_id=room, channel_id=channel)
        return "Joined voice channel"

    async def _discard(self, room: RoomId, session: VoiceSession) -> None:
        try:
            await session.leave()
        except Exception:
            logger.exception("join.discard_failed", room_id=room)

    async def leave(self, room: RoomId) -> str:
        session = await self._registry.remove(room)
        if session is None:
            return "Not in a voice channel"
        try:
            await session.leave()
        except Exception as exc:
            logger.exception("leave.failed", room_id=room)
            return f"Failed: {exc}"
        logger.info("leave.ok", room_id=room)
        return "Left voice channel"

    async def mute(self, room: RoomId) -> str:
        session = await self._registry.get(room)
        if session is None:
            return "Not in a voice channel"
        if session.is_muted():
            return "Already muted"
        try:
            await session.mute(True)
        except Exception as exc:
            logger.exception("mute.failed", room_id=room)
            return f"Failed: {exc}"
        return "Now muted"

    async def unmute(self, room: RoomId) -> str:
        # clears unconditionally, unlike mute
        session = await self._registry.get(room)
        if session is None:
            return "Not in a voice channel to unmute in"
        try:
            await session.mute(False)
        except Exception as exc:
            logger.exception("unmute.failed", room_id=room)
            return f"Failed: {exc}"
        return "Unmuted"

    async def deafen(self, room: RoomId) -> str:
        session = await self._registry.get(room)
        if session is None:
            return "Not in a voice channel"
        if session.is_deafened():
            return "Already deafened"
        try:
            await session.deafen(True)
        except Exception as exc:
            logger.exception("deafen.failed", room_id=room)
            return f"Failed: {exc}"
        return "Deafened"

    async def undeafen(self, room: RoomId) -> str:
        session = await self._registry.get(room)
        if session is None:
            return "Not in a voice channel to undeafen in"
        try:
            await session.deafen(False)
        except Exception as exc:
            logger.exception("undeafen.failed", room_id=room)
            return f"Failed: {exc}"
        return "Undeafened"

    async def play(self, fragment: str, *, room: RoomId | None = None) -> str:
        """Play the first sound matching ``fragment``.

        With ``room`` the session of that room is used; without one (the
        console) the first room holding a session is picked.
        """
        if not canonicalize(fragment):
            return "Must provide a sound name"

        if room is None:
            try:
                found = await self._registry.find_active_session()
            except NotReadyError:
                return NOT_READY
            if found is None:
                return "Not in a voice channel to play in"
            room, session = found
        else:
            session = await self._registry.get(room)
            if session is None:
                return "Not in a voice channel to play in"

        sound = await resolve_async(fragment, self._sounds_dir)
        if sound is None:
            logger.info("play.no_match", room_id=room, fragment=fragment)
            return "no matching file found"

        try:
            await session.play(sound.path)
        except StreamOpenError:
            logger.warning("play.open_failed", room_id=room, sound=sound.name)
            return "Error sourcing ffmpeg"
        except Exception:
            logger.exception("play.failed", room_id=room, sound=sound.name)
            return "Error sourcing ffmpeg"
        logger.info("play.started", room_id=room, sound=sound.name)
        return f"Playing {sound.name}"
