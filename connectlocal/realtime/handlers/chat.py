"""Chat room events: membership, messages, typing, read receipts, presence."""

from __future__ import annotations

from typing import Any

from connectlocal.chats import services
from connectlocal.core.exceptions import ChatNotFound
from connectlocal.core.exceptions import InvalidState
from connectlocal.realtime.events.chats import build_message_payload
from connectlocal.realtime.events.chats import deliver_new_message
from connectlocal.realtime.rooms import room_for_chat

from . import field
from . import run_as_user
from . import socket_handler


def _chat_ref(data: Any) -> Any:
    chat_id = field(data, "chatId", "chat_id")
    if chat_id in (None, ""):
        raise ChatNotFound
    return chat_id


def _joinable_chat_id(user, chat_id: Any):
    return services.ensure_can_join(chat_id, user).pk


def _send(user, data: dict[str, Any]):
    sent = services.send_message(
        field(data, "chatId", "chat_id"),
        user,
        data.get("content"),
        data.get("type") or "text",
        media=data.get("media"),
        location=data.get("location"),
        reply_to_id=field(data, "replyToId", "reply_to_id"),
    )
    return sent.message.chat_id, build_message_payload(sent.message), sent.recipient_ids


def _mark_read(user, chat_id: Any, message_ids: list[Any]):
    chat = services.get_chat(chat_id)
    return chat.pk, services.mark_messages_read(chat.pk, user, message_ids)


@socket_handler(failure_message="Failed to join chat")
async def join_chat(hub, connection, data=None):
    chat_id = await run_as_user(connection.user_id, _joinable_chat_id, _chat_ref(data))
    await hub.router.join(connection, room_for_chat(chat_id))


@socket_handler(failure_message="Failed to leave chat")
async def leave_chat(hub, connection, data=None):
    await hub.router.leave(connection, room_for_chat(_chat_ref(data)))


@socket_handler(failure_message="Failed to send message")
async def send_message(hub, connection, data=None):
    if not isinstance(data, dict):
        msg = "Invalid message payload"
        raise InvalidState(msg)
    chat_id, payload, recipient_ids = await run_as_user(connection.user_id, _send, data)
    await deliver_new_message(hub, chat_id, payload, recipient_ids)


@socket_handler()
async def typing_start(hub, connection, data=None):
    chat_id = _chat_ref(data)
    await hub.router.broadcast(
        room_for_chat(chat_id),
        "user_typing",
        {
            "chatId": str(chat_id),
            "userId": connection.user_id,
            "username": connection.username,
        },
        exclude=connection,
    )


@socket_handler()
async def typing_stop(hub, connection, data=None):
    chat_id = _chat_ref(data)
    await hub.router.broadcast(
        room_for_chat(chat_id),
        "user_stop_typing",
        {"chatId": str(chat_id), "userId": connection.user_id},
        exclude=connection,
    )


@socket_handler(failure_message="Failed to update read receipts")
async def mark_read(hub, connection, data=None):
    message_ids = field(data, "messageIds", "message_ids") if isinstance(data, dict) else None
    if not isinstance(message_ids, list):
        msg = "messageIds must be a list"
        raise InvalidState(msg)
    chat_id, read_ids = await run_as_user(
        connection.user_id, _mark_read, _chat_ref(data), message_ids
    )
    await hub.router.broadcast(
        room_for_chat(chat_id),
        "messages_read",
        {
            "chatId": str(chat_id),
            "userId": connection.user_id,
            "messageIds": read_ids,
        },
    )


@socket_handler(failure_message="Failed to get online status")
async def get_online_status(hub, connection, data=None):
    if data is None:
        user_ids: list[Any] = []
    elif isinstance(data, (list, tuple)):
        user_ids = list(data)
    else:
        user_ids = [data]
    status = await hub.presence.online_status(user_ids)
    await hub.router.emit_to_connection(connection, "online_status_response", status)
