"""Room/Channel Router.

Keeps an index of which connection is subscribed to which room, in lockstep
with the Socket.IO server's own rooms, and delivers events through the server
(so delivery spans processes when the Redis client manager is enabled).

Every membership is recorded on its owning :class:`Connection` as well, which
turns disconnect cleanup into one sweep over that connection's rooms.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING
from typing import Any

if TYPE_CHECKING:  # import for type checking only
    from connectlocal.realtime.connection import Connection

logger = logging.getLogger(__name__)


def _normalize_room_suffix(value: Any) -> str:
    text = str(value).strip()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text


def room_for_user(user_id: int) -> str:
    return f"user_{int(user_id)}"


def room_for_chat(chat_id: Any) -> str:
    return f"chat_{_normalize_room_suffix(chat_id)}"


def room_for_live_chat(session_id: Any) -> str:
    return f"live_chat_{_normalize_room_suffix(session_id)}"


def _sid(target: Connection | str | None) -> str | None:
    if target is None or isinstance(target, str):
        return target
    return target.sid


class RoomRouter:
    def __init__(self, server):
        self.server = server
        self._rooms: dict[str, dict[str, Connection]] = {}

    async def join(self, connection: Connection, room: str) -> bool:
        """Subscribe ``connection`` to ``room``. No authorization happens here."""

        members = self._rooms.setdefault(room, {})
        if connection.sid in members:
            return False
        members[connection.sid] = connection
        connection.rooms.add(room)
        await self.server.enter_room(connection.sid, room)
        return True

    async def leave(self, connection: Connection, room: str) -> bool:
        if not self._forget(connection.sid, room):
            return False
        connection.rooms.discard(room)
        await self.server.leave_room(connection.sid, room)
        return True

    async def drop_connection(self, connection: Connection) -> None:
        """Remove every membership owned by ``connection``."""

        rooms = list(connection.rooms)
        connection.rooms.clear()
        for room in rooms:
            self._forget(connection.sid, room)
            await self.server.leave_room(connection.sid, room)
        logger.debug("Dropped %s room memberships for %s", len(rooms), connection.sid)

    async def broadcast(
        self,
        room: str,
        event: str,
        payload: Any,
        exclude: Connection | str | None = None,
    ) -> None:
        await self.server.emit(event, payload, room=room, skip_sid=_sid(exclude))

    async def emit_to_user(self, user_id: int, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, room=room_for_user(user_id))

    async def emit_to_connection(
        self,
        connection: Connection | str,
        event: str,
        payload: Any,
    ) -> None:
        await self.server.emit(event, payload, to=_sid(connection))

    def subscribers(self, room: str) -> list[Connection]:
        return list(self._rooms.get(room, {}).values())

    def is_member(self, connection: Connection | str, room: str) -> bool:
        return _sid(connection) in self._rooms.get(room, {})

    def rooms(self) -> list[str]:
        return list(self._rooms)

    def _forget(self, sid: str, room: str) -> bool:
        members = self._rooms.get(room)
        if not members or sid not in members:
            return False
        del members[sid]
        if not members:
            del self._rooms[room]
        return True
