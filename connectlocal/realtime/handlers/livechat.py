"""Live-support events for users and admins.

Every failure here is reported on ``live_chat_error`` to the caller only.
"""

from __future__ import annotations

from typing import Any

from connectlocal.core.exceptions import AccessDenied
from connectlocal.core.exceptions import SessionNotFound
from connectlocal.livechat import services
from connectlocal.realtime.events.livechat import announce_new_session
from connectlocal.realtime.events.livechat import broadcast_admin_joined
from connectlocal.realtime.events.livechat import broadcast_admin_left
from connectlocal.realtime.events.livechat import broadcast_session_ended
from connectlocal.realtime.events.livechat import build_live_message_payload
from connectlocal.realtime.events.livechat import build_session_payload
from connectlocal.realtime.events.livechat import deliver_live_chat_message
from connectlocal.realtime.events.livechat import user_summary
from connectlocal.realtime.rooms import room_for_live_chat

from . import field
from . import run_as_user
from . import socket_handler

ERROR_EVENT = "live_chat_error"


def _session_ref(data: Any) -> Any:
    session_id = field(data, "sessionId", "session_id")
    if session_id in (None, ""):
        raise SessionNotFound
    return session_id


def _load_for(user, session_id: Any):
    session = services.get_session_for(session_id, user)
    return session.pk, build_session_payload(session)


def _post(user, session_id: Any, text: Any):
    message = services.post_message(session_id, user, text)
    return (
        message.session_id,
        build_live_message_payload(message),
        message.session.admin_id,
        user_summary(user),
    )


def _claim(user, session_id: Any):
    result = services.claim_session(session_id, user)
    return result.session.pk, result.newly_claimed


def _release(user, session_id: Any):
    return services.release_session(session_id, user).pk


def _end(user, session_id: Any, reason: str | None):
    return services.end_session(session_id, user, reason).pk


def _announce_payload(user, session_id: Any):
    if not user.is_platform_admin:
        msg = "Admin access required"
        raise AccessDenied(msg)
    return build_session_payload(services.get_session(session_id))


def _available(user):
    if not user.is_platform_admin:
        msg = "Admin access required"
        raise AccessDenied(msg)
    return [build_session_payload(s) for s in services.available_sessions()]


@socket_handler(ERROR_EVENT, "Failed to join live chat")
async def join_live_chat(hub, connection, data=None):
    session_id, session_payload = await run_as_user(
        connection.user_id, _load_for, _session_ref(data)
    )
    room = room_for_live_chat(session_id)
    await hub.router.join(connection, room)
    hub.live_sessions.touch(session_id, connection.user_id)
    await hub.router.emit_to_connection(
        connection,
        "live_chat_session_info",
        {"sessionId": str(session_id), "session": session_payload},
    )
    await hub.router.broadcast(
        room,
        "live_chat_user_joined",
        {"sessionId": str(session_id), "user": connection.summary(with_role=True)},
        exclude=connection,
    )


@socket_handler(ERROR_EVENT, "Failed to leave live chat")
async def leave_live_chat(hub, connection, data=None):
    session_id = _session_ref(data)
    room = room_for_live_chat(session_id)
    if not await hub.router.leave(connection, room):
        return
    hub.live_sessions.remove_participant(session_id, connection.user_id)
    await hub.router.broadcast(
        room,
        "live_chat_user_left",
        {"sessionId": str(session_id), "user": connection.summary(with_role=True)},
    )


@socket_handler(ERROR_EVENT, "Failed to send message")
async def send_live_chat_message(hub, connection, data=None):
    text = data.get("message") if isinstance(data, dict) else None
    session_id, payload, admin_id, sender = await run_as_user(
        connection.user_id, _post, _session_ref(data), text
    )
    await deliver_live_chat_message(hub, session_id, payload, admin_id, sender)


@socket_handler(ERROR_EVENT, "Failed to announce live chat session")
async def new_live_chat_session(hub, connection, data=None):
    payload = await run_as_user(
        connection.user_id, _announce_payload, _session_ref(data)
    )
    await announce_new_session(hub, payload, exclude_admin_id=connection.user_id)


@socket_handler(ERROR_EVENT, "Failed to join live chat")
async def admin_join_live_chat(hub, connection, data=None):
    session_id, newly_claimed = await run_as_user(
        connection.user_id, _claim, _session_ref(data)
    )
    await hub.router.join(connection, room_for_live_chat(session_id))
    hub.admins.add(connection.user_id, connection.sid)
    hub.live_sessions.touch(session_id, connection.user_id)
    if newly_claimed:
        await broadcast_admin_joined(hub, session_id, connection.summary())


@socket_handler(ERROR_EVENT, "Failed to leave live chat")
async def admin_leave_live_chat(hub, connection, data=None):
    # Stays in hub.admins until disconnect so new sessions still reach it
    session_id = await run_as_user(connection.user_id, _release, _session_ref(data))
    await hub.router.leave(connection, room_for_live_chat(session_id))
    hub.live_sessions.remove_participant(session_id, connection.user_id)
    await broadcast_admin_left(hub, session_id, connection.summary())


@socket_handler(ERROR_EVENT)
async def live_chat_typing_start(hub, connection, data=None):
    session_id = _session_ref(data)
    await hub.router.broadcast(
        room_for_live_chat(session_id),
        "live_chat_user_typing",
        {
            "sessionId": str(session_id),
            "userId": connection.user_id,
            "username": connection.username,
            "isAdmin": connection.is_admin,
        },
        exclude=connection,
    )


@socket_handler(ERROR_EVENT)
async def live_chat_typing_stop(hub, connection, data=None):
    session_id = _session_ref(data)
    await hub.router.broadcast(
        room_for_live_chat(session_id),
        "live_chat_user_stop_typing",
        {
            "sessionId": str(session_id),
            "userId": connection.user_id,
            "isAdmin": connection.is_admin,
        },
        exclude=connection,
    )


@socket_handler(ERROR_EVENT, "Failed to get available sessions")
async def get_available_live_chats(hub, connection, data=None):
    sessions = await run_as_user(connection.user_id, _available)
    await hub.router.emit_to_connection(
        connection, "available_live_chats", {"sessions": sessions}
    )


@socket_handler(ERROR_EVENT, "Failed to end session")
async def end_live_chat_session(hub, connection, data=None):
    reason = data.get("reason") if isinstance(data, dict) else None
    session_id = await run_as_user(
        connection.user_id, _end, _session_ref(data), reason
    )
    await broadcast_session_ended(
        hub, session_id, reason, connection.summary(with_role=True)
    )
