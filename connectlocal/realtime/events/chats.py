from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async

from connectlocal.chats.api.serializers import MessageSerializer
from connectlocal.notifications.tasks import notify_offline_recipient
from connectlocal.realtime.hub import emit_event_to_room
from connectlocal.realtime.hub import get_hub
from connectlocal.realtime.rooms import room_for_chat

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from connectlocal.chats.models import Message
    from connectlocal.chats.services import SentMessage
    from connectlocal.realtime.hub import RealtimeHub

logger = logging.getLogger(__name__)


def build_message_payload(message: Message) -> dict[str, Any]:
    return dict(MessageSerializer(message).data)


def dispatch_offline_notifications(
    recipient_ids: Iterable[int],
    message_payload: dict[str, Any],
) -> None:
    """Hand offline recipients to the notification sink; never raises."""

    content = message_payload.get("content") or {}
    preview = content.get("text") if isinstance(content, dict) else ""
    preview = preview or f"[{message_payload.get('message_type', 'message')}]"
    sender = message_payload.get("sender") or {}
    for recipient_id in recipient_ids:
        try:
            notify_offline_recipient.delay(
                recipient_id,
                message_payload["sender_id"],
                str(message_payload["chat_id"]),
                str(message_payload["id"]),
                f"{sender.get('display_name') or sender.get('username', '')}: {preview}",
            )
        except Exception:  # noqa: BLE001 - notifications are best effort
            logger.warning(
                "Could not queue offline notification for user %s",
                recipient_id,
                exc_info=True,
            )


async def deliver_new_message(
    hub: RealtimeHub,
    chat_id: Any,
    message_payload: dict[str, Any],
    recipient_ids: Iterable[int],
) -> None:
    await hub.router.broadcast(
        room_for_chat(chat_id), "new_message", {"message": message_payload}
    )
    offline = [uid for uid in recipient_ids if not await hub.presence.is_online(uid)]
    if offline:
        await database_sync_to_async(dispatch_offline_notifications)(
            offline, message_payload
        )


def publish_new_message(sent: SentMessage) -> None:
    payload = build_message_payload(sent.message)
    async_to_sync(deliver_new_message)(
        get_hub(), sent.message.chat_id, payload, sent.recipient_ids
    )


def publish_message_edited(message: Message) -> None:
    emit_event_to_room(
        room_for_chat(message.chat_id),
        "message_edited",
        {
            "messageId": str(message.pk),
            "chatId": str(message.chat_id),
            "content": message.content,
            "editedAt": message.edited_at.isoformat() if message.edited_at else None,
        },
    )


def publish_message_reaction(message: Message) -> None:
    emit_event_to_room(
        room_for_chat(message.chat_id),
        "message_reaction",
        {
            "messageId": str(message.pk),
            "chatId": str(message.chat_id),
            "reactions": message.reactions,
        },
    )


def publish_message_deleted(message: Message) -> None:
    emit_event_to_room(
        room_for_chat(message.chat_id),
        "message_deleted",
        {"messageId": str(message.pk), "chatId": str(message.chat_id)},
    )


def publish_messages_read(chat_id, user_id: int, message_ids: list[str]) -> None:
    emit_event_to_room(
        room_for_chat(chat_id),
        "messages_read",
        {"chatId": str(chat_id), "userId": user_id, "messageIds": message_ids},
    )
