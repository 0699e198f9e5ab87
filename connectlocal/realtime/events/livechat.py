from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync

from connectlocal.livechat.api.serializers import LiveChatMessageSerializer
from connectlocal.livechat.api.serializers import LiveChatSessionSerializer
from connectlocal.realtime.hub import get_hub
from connectlocal.realtime.rooms import room_for_live_chat

if TYPE_CHECKING:  # import for type checking only
    from connectlocal.livechat.models import LiveChatMessage
    from connectlocal.livechat.models import LiveChatSession
    from connectlocal.realtime.hub import RealtimeHub

NOTIFICATION_EVENT = "live_chat_notification"


def build_session_payload(session: LiveChatSession) -> dict[str, Any]:
    return dict(LiveChatSessionSerializer(session).data)


def build_live_message_payload(message: LiveChatMessage) -> dict[str, Any]:
    return dict(LiveChatMessageSerializer(message).data)


def user_summary(user, *, with_role: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": user.pk,
        "displayName": user.display_name or user.username,
    }
    if with_role:
        data["role"] = "admin" if user.is_platform_admin else "user"
    return data


async def announce_new_session(
    hub: RealtimeHub,
    session_payload: dict[str, Any],
    exclude_admin_id: int | None = None,
) -> int:
    """Tell every connected admin that a session is waiting in the queue."""

    return await hub.admins.notify_all_admins(
        NOTIFICATION_EVENT,
        {
            "type": "new_session",
            "sessionId": str(session_payload["id"]),
            "session": session_payload,
        },
        exclude_admin_id=exclude_admin_id,
    )


async def deliver_live_chat_message(
    hub: RealtimeHub,
    session_id: Any,
    message_payload: dict[str, Any],
    admin_id: int | None,
    sender: dict[str, Any],
) -> None:
    """Broadcast to the session room and ping the assigned admin directly."""

    session_key = str(session_id)
    await hub.router.broadcast(
        room_for_live_chat(session_key),
        "new_live_chat_message",
        {"sessionId": session_key, "message": message_payload},
    )
    if message_payload.get("sender_type") == "user" and admin_id is not None:
        await hub.router.emit_to_user(
            admin_id,
            NOTIFICATION_EVENT,
            {
                "type": "new_message",
                "sessionId": session_key,
                "message": message_payload,
                "user": sender,
            },
        )


async def broadcast_admin_joined(
    hub: RealtimeHub, session_id: Any, admin: dict[str, Any]
) -> None:
    session_key = str(session_id)
    await hub.router.broadcast(
        room_for_live_chat(session_key),
        "admin_joined_live_chat",
        {"sessionId": session_key, "admin": admin},
    )


async def broadcast_admin_left(
    hub: RealtimeHub, session_id: Any, admin: dict[str, Any]
) -> None:
    session_key = str(session_id)
    await hub.router.broadcast(
        room_for_live_chat(session_key),
        "admin_left_live_chat",
        {"sessionId": session_key, "admin": admin},
    )


async def broadcast_session_ended(
    hub: RealtimeHub,
    session_id: Any,
    reason: str | None,
    ended_by: dict[str, Any],
) -> None:
    session_key = str(session_id)
    await hub.router.broadcast(
        room_for_live_chat(session_key),
        "live_chat_session_ended",
        {
            "sessionId": session_key,
            "reason": reason or "Session ended",
            "endedBy": ended_by,
        },
    )
    hub.live_sessions.drop(session_key)


async def broadcast_session_cancelled(
    hub: RealtimeHub, session_id: Any, cancelled_by: dict[str, Any]
) -> None:
    session_key = str(session_id)
    await hub.router.broadcast(
        room_for_live_chat(session_key),
        "live_chat_session_cancelled",
        {"sessionId": session_key, "cancelledBy": cancelled_by},
    )
    hub.live_sessions.drop(session_key)


# Sync entry points for views and tasks


def publish_new_session(session: LiveChatSession) -> None:
    async_to_sync(announce_new_session)(get_hub(), build_session_payload(session))


def publish_session_claimed(session: LiveChatSession, admin) -> None:
    async_to_sync(broadcast_admin_joined)(get_hub(), session.pk, user_summary(admin))


def publish_live_chat_message(message: LiveChatMessage, sender) -> None:
    async_to_sync(deliver_live_chat_message)(
        get_hub(),
        message.session_id,
        build_live_message_payload(message),
        message.session.admin_id,
        user_summary(sender),
    )


def publish_session_ended(session: LiveChatSession, user, reason: str | None) -> None:
    async_to_sync(broadcast_session_ended)(
        get_hub(), session.pk, reason, user_summary(user, with_role=True)
    )


def publish_session_cancelled(session: LiveChatSession, admin) -> None:
    async_to_sync(broadcast_session_cancelled)(
        get_hub(), session.pk, user_summary(admin, with_role=True)
    )
