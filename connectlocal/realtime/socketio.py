"""The process-wide Socket.IO server and its event table."""

from __future__ import annotations

import socketio
from django.conf import settings

from connectlocal.realtime.handlers import chat
from connectlocal.realtime.handlers import lifecycle
from connectlocal.realtime.handlers import livechat


def _client_manager():
    if settings.SOCKETIO_USE_REDIS_MANAGER:
        return socketio.AsyncRedisManager(settings.REDIS_URL)
    return None


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.SOCKETIO_CORS_ALLOWED_ORIGINS,
    ping_timeout=settings.SOCKETIO_PING_TIMEOUT,
    ping_interval=settings.SOCKETIO_PING_INTERVAL,
    client_manager=_client_manager(),
    logger=False,
    engineio_logger=False,
)

EVENT_HANDLERS = {
    "connect": lifecycle.connect,
    "disconnect": lifecycle.disconnect,
    # chats
    "join_chat": chat.join_chat,
    "leave_chat": chat.leave_chat,
    "send_message": chat.send_message,
    "typing_start": chat.typing_start,
    "typing_stop": chat.typing_stop,
    "mark_read": chat.mark_read,
    "get_online_status": chat.get_online_status,
    # live support
    "join_live_chat": livechat.join_live_chat,
    "leave_live_chat": livechat.leave_live_chat,
    "send_live_chat_message": livechat.send_live_chat_message,
    "new_live_chat_session": livechat.new_live_chat_session,
    "admin_join_live_chat": livechat.admin_join_live_chat,
    "admin_leave_live_chat": livechat.admin_leave_live_chat,
    "live_chat_typing_start": livechat.live_chat_typing_start,
    "live_chat_typing_stop": livechat.live_chat_typing_stop,
    "get_available_live_chats": livechat.get_available_live_chats,
    "end_live_chat_session": livechat.end_live_chat_session,
}

for _event, _handler in EVENT_HANDLERS.items():
    sio.on(_event, _handler)
