"""Process-wide owner of the realtime registries.

All mutable realtime state (presence, room index, admin connections, live
session bookkeeping, open connections) hangs off one :class:`RealtimeHub`
bound to a Socket.IO server. Production code uses the hub bound to the global
``sio`` server; tests install their own with :func:`install_hub`.
"""

from __future__ import annotations

from typing import Any

from asgiref.sync import async_to_sync

from connectlocal.realtime.admins import AdminRegistry
from connectlocal.realtime.admins import LiveSessionTracker
from connectlocal.realtime.presence import PresenceRegistry
from connectlocal.realtime.rooms import RoomRouter
from connectlocal.realtime.sessions import ConnectionManager


class RealtimeHub:
    def __init__(self, server, presence: PresenceRegistry | None = None):
        self.server = server
        self.presence = presence if presence is not None else PresenceRegistry()
        self.router = RoomRouter(server)
        self.admins = AdminRegistry(self.router)
        self.live_sessions = LiveSessionTracker()
        self.connections = ConnectionManager(
            presence=self.presence,
            router=self.router,
            admins=self.admins,
            live_sessions=self.live_sessions,
        )


_hub: RealtimeHub | None = None


def get_hub() -> RealtimeHub:
    global _hub  # noqa: PLW0603
    if _hub is None:
        from connectlocal.realtime.socketio import sio  # noqa: PLC0415

        _hub = RealtimeHub(sio)
    return _hub


def install_hub(hub: RealtimeHub) -> RealtimeHub:
    global _hub  # noqa: PLW0603
    _hub = hub
    return hub


def reset_hub() -> None:
    global _hub  # noqa: PLW0603
    _hub = None


def emit_event_to_room(room: str, event: str, payload: dict[str, Any]) -> None:
    """Emit an event to a room from sync Django code."""

    async_to_sync(get_hub().router.broadcast)(room, event, payload)


def emit_event_to_user(user_id: int, event: str, payload: dict[str, Any]) -> None:
    async_to_sync(get_hub().router.emit_to_user)(user_id, event, payload)
