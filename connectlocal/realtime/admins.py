"""Connected-admin tracking and per-process live-session bookkeeping."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

if TYPE_CHECKING:  # import for type checking only
    from connectlocal.realtime.rooms import RoomRouter

logger = logging.getLogger(__name__)


class AdminRegistry:
    """Admin connections that receive support-queue events.

    Admins are not room scoped until they claim a session, so queue events go
    straight to each registered connection.
    """

    def __init__(self, router: RoomRouter):
        self.router = router
        self._connections: dict[int, set[str]] = {}

    def __len__(self) -> int:
        return sum(len(sids) for sids in self._connections.values())

    def add(self, user_id: int, sid: str) -> None:
        self._connections.setdefault(int(user_id), set()).add(sid)

    def discard(self, user_id: int, sid: str) -> None:
        sids = self._connections.get(int(user_id))
        if not sids:
            return
        sids.discard(sid)
        if not sids:
            del self._connections[int(user_id)]

    def is_connected(self, user_id: int) -> bool:
        return int(user_id) in self._connections

    def connections(self) -> list[tuple[int, str]]:
        """Snapshot of ``(admin_id, sid)`` pairs."""
        return [
            (admin_id, sid)
            for admin_id, sids in self._connections.items()
            for sid in sorted(sids)
        ]

    async def notify_all_admins(
        self,
        event: str,
        payload: Any,
        exclude_admin_id: int | None = None,
    ) -> int:
        """Emit ``event`` to every connected admin; returns the number of emits.

        Iterates a snapshot so registrations changing while emits are awaited
        neither skip nor repeat an admin connection.
        """

        sent = 0
        for admin_id, sid in self.connections():
            if exclude_admin_id is not None and admin_id == int(exclude_admin_id):
                continue
            await self.router.emit_to_connection(sid, event, payload)
            sent += 1
        logger.debug("Sent %s to %s admin connections", event, sent)
        return sent


class LiveSessionTracker:
    """``session_id -> {user ids}`` for users currently in a live-chat room."""

    def __init__(self):
        self._sessions: dict[str, set[int]] = {}

    def __contains__(self, session_id: object) -> bool:
        return str(session_id) in self._sessions

    def touch(self, session_id: Any, user_id: int) -> None:
        self._sessions.setdefault(str(session_id), set()).add(int(user_id))

    def participants(self, session_id: Any) -> frozenset[int]:
        return frozenset(self._sessions.get(str(session_id), ()))

    def remove_participant(self, session_id: Any, user_id: int) -> bool:
        """Drop ``user_id``; returns True when the entry itself was discarded."""

        key = str(session_id)
        users = self._sessions.get(key)
        if users is None:
            return False
        users.discard(int(user_id))
        if not users:
            del self._sessions[key]
            return True
        return False

    def drop(self, session_id: Any) -> None:
        self._sessions.pop(str(session_id), None)

    def discard_user(self, user_id: int) -> None:
        for session_id in list(self._sessions):
            self.remove_participant(session_id, user_id)
