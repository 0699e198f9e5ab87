"""Connection lifecycle: handshake acceptance and disconnect cleanup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.utils import timezone

from connectlocal.core.exceptions import AuthenticationFailed
from connectlocal.realtime.connection import Connection
from connectlocal.realtime.rooms import room_for_user

if TYPE_CHECKING:  # import for type checking only
    from connectlocal.realtime.admins import AdminRegistry
    from connectlocal.realtime.admins import LiveSessionTracker
    from connectlocal.realtime.identity import UserIdentity
    from connectlocal.realtime.presence import PresenceRegistry
    from connectlocal.realtime.rooms import RoomRouter

logger = logging.getLogger(__name__)


@database_sync_to_async
def _record_presence(user_id: int, *, online: bool) -> None:
    User = get_user_model()
    fields: dict = {"is_online": online}
    if not online:
        fields["last_active"] = timezone.now()
    User.objects.filter(pk=user_id).update(**fields)


async def record_presence(user_id: int, *, online: bool) -> None:
    """Mirror presence onto the user row; failures are logged, never raised."""

    try:
        await _record_presence(user_id, online=online)
    except DatabaseError:
        logger.warning(
            "Could not persist presence (online=%s) for user %s",
            online,
            user_id,
            exc_info=True,
        )


class ConnectionManager:
    def __init__(
        self,
        presence: PresenceRegistry,
        router: RoomRouter,
        admins: AdminRegistry,
        live_sessions: LiveSessionTracker,
    ):
        self.presence = presence
        self.router = router
        self.admins = admins
        self.live_sessions = live_sessions
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def get(self, sid: str) -> Connection | None:
        return self._connections.get(sid)

    def require(self, sid: str) -> Connection:
        connection = self._connections.get(sid)
        if connection is None:
            msg = "Not authenticated"
            raise AuthenticationFailed(msg)
        return connection

    def for_user(self, user_id: int) -> list[Connection]:
        return [c for c in self._connections.values() if c.user_id == int(user_id)]

    async def open(self, sid: str, identity: UserIdentity) -> Connection:
        """Enter the authenticated state for a verified handshake."""

        connection = Connection.from_identity(sid, identity)
        self._connections[sid] = connection
        await self.presence.mark_online(connection.user_id, sid)
        await self.router.join(connection, room_for_user(connection.user_id))
        if connection.is_admin:
            self.admins.add(connection.user_id, sid)
        await record_presence(connection.user_id, online=True)
        logger.info(
            "User %s connected (%s, role=%s)",
            connection.user_id,
            sid,
            connection.role,
        )
        return connection

    async def close(self, sid: str) -> Connection | None:
        """Tear down everything the connection owned. Safe to call twice."""

        connection = self._connections.pop(sid, None)
        if connection is None:
            return None

        went_offline = await self.presence.mark_offline(connection.user_id, sid)
        await self.router.drop_connection(connection)
        self.admins.discard(connection.user_id, sid)

        remaining = self.for_user(connection.user_id)
        if not remaining:
            self.live_sessions.discard_user(connection.user_id)
            if went_offline:
                await record_presence(connection.user_id, online=False)
        elif self.presence.entry(connection.user_id) is None:
            # Hand presence over to the user's most recent remaining connection
            await self.presence.mark_online(connection.user_id, remaining[-1].sid)
        logger.info("User %s disconnected (%s)", connection.user_id, sid)
        return connection
