"""Shared table of active voice sessions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import anyio

from .logging import get_logger
from .voice import RoomId, SoundboardError, VoiceConnector, VoiceSession

logger = get_logger(__name__)

__all__ = ["NotReadyError", "Room", "SessionRegistry"]


class NotReadyError(SoundboardError):
    """The chat connection has not reported ready yet."""


@dataclass(frozen=True, slots=True)
class Room:
    id: RoomId
    name: str


class SessionRegistry:
    """Room id to voice session mapping plus the current connection context.

    Every method takes the lock for exactly one read or read-modify-write and
    never awaits a collaborator while holding it.
    """

    def __init__(self) -> None:
        self._lock = anyio.Lock()
        self._context: VoiceConnector | None = None
        self._rooms: tuple[Room, ...] = ()
        self._sessions: dict[RoomId, VoiceSession] = {}

    async def set_connection_context(
        self, context: VoiceConnector, rooms: Iterable[Room]
    ) -> None:
        """Replace the connection context and the known room list together."""
        snapshot = tuple(rooms)
        async with self._lock:
            self._context = context
            self._rooms = snapshot
        logger.info("registry.ready", rooms=len(snapshot))

    async def clear_connection_context(self) -> None:
        async with self._lock:
            self._context = None
            self._rooms = ()
        logger.info("registry.not_ready")

    async def connection_context(self) -> VoiceConnector:
        async with self._lock:
            if self._context is None:
                raise NotReadyError("connection not ready")
            return self._context

    async def rooms(self) -> tuple[Room, ...]:
        async with self._lock:
            return self._rooms

    async def find_active_session(self) -> tuple[RoomId, VoiceSession] | None:
        """First known room, in room order, that has a stored session."""
        async with self._lock:
            if self._context is None:
                raise NotReadyError("connection not ready")
            for room in self._rooms:
                session = self._sessions.get(room.id)
                if session is not None:
                    return room.id, session
            return None

    async def get(self, room_id: RoomId) -> VoiceSession | None:
        async with self._lock:
            return self._sessions.get(room_id)

    async def put(self, room_id: RoomId, session: VoiceSession) -> None:
        async with self._lock:
            self._sessions[room_id] = session

    async def put_if_absent(
        self, room_id: RoomId, session: VoiceSession
    ) -> VoiceSession:
        """Store ``session`` unless the room already has one; return the stored one."""
        async with self._lock:
            return self._sessions.setdefault(room_id, session)

    async def remove(self, room_id: RoomId) -> VoiceSession | None:
        async with self._lock:
            return self._sessions.pop(room_id, None)

    async def drain(self) -> list[tuple[RoomId, VoiceSession]]:
        async with self._lock:
            drained = list(self._sessions.items())
            self._sessions.clear()
            return drained
