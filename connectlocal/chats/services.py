from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from connectlocal.chats.content import parse_content
from connectlocal.chats.models import Chat
from connectlocal.chats.models import ChatParticipant
from connectlocal.chats.models import Message
from connectlocal.core.exceptions import AccessDenied
from connectlocal.core.exceptions import ChatNotFound
from connectlocal.core.exceptions import InvalidState
from connectlocal.core.exceptions import MessageNotFound
from connectlocal.core.exceptions import NotFound
from connectlocal.core.exceptions import PersistenceFailure

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable
    from datetime import datetime

User = get_user_model()
logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200


@dataclass(frozen=True)
class SentMessage:
    """A persisted message plus the other active participants of its chat."""

    message: Message
    recipient_ids: list[int]


class ChatAlreadyExists(InvalidState):
    default_detail = "Chat already exists"
    default_code = "chat_exists"

    def __init__(self, chat: Chat):
        super().__init__()
        self.chat_id = chat.pk


def _coerce_uuids(values: Iterable[Any]) -> list[uuid.UUID]:
    parsed: list[uuid.UUID] = []
    for value in values:
        try:
            parsed.append(uuid.UUID(str(value)))
        except ValueError:
            continue
    return parsed


def _coerce_user_ids(values: Iterable[Any]) -> list[int]:
    ids: list[int] = []
    for raw in values:
        try:
            pid = int(raw)
        except (TypeError, ValueError):
            msg = f"Invalid participant id: {raw}"
            raise InvalidState(msg) from None
        if pid not in ids:
            ids.append(pid)
    return ids


def get_chat(chat_id: Any) -> Chat:
    try:
        return Chat.objects.get(pk=chat_id, is_active=True)
    except (Chat.DoesNotExist, ValidationError, ValueError) as exc:
        raise ChatNotFound from exc


def get_membership(chat: Chat, user_id: int) -> ChatParticipant:
    membership = chat.active_memberships().filter(user_id=user_id).first()
    if membership is None:
        msg = "Access denied to this chat"
        raise AccessDenied(msg)
    return membership


def get_chat_for_participant(chat_id: Any, user) -> Chat:
    """Chat lookup for REST callers: non-participants see a plain 404."""

    chat = get_chat(chat_id)
    if not chat.is_active_participant(user.pk):
        raise ChatNotFound
    return chat


def ensure_can_join(chat_id: Any, user) -> Chat:
    chat = get_chat(chat_id)
    get_membership(chat, user.pk)
    return chat


def _get_message(message_id: Any) -> Message:
    try:
        return Message.objects.select_related("chat", "sender").get(pk=message_id)
    except (Message.DoesNotExist, ValidationError, ValueError) as exc:
        raise MessageNotFound from exc


def _get_own_message(message_id: Any, user) -> Message:
    message = _get_message(message_id)
    if message.sender_id != user.pk:
        msg = "Message not found or unauthorized"
        raise MessageNotFound(msg)
    return message


def send_message(  # noqa: PLR0913
    chat_id: Any,
    sender,
    content: Any,
    message_type: str = Message.Type.TEXT,
    *,
    media: dict | None = None,
    location: dict | None = None,
    reply_to_id: Any = None,
) -> SentMessage:
    """Persist a chat message sent by ``sender``.

    The chat and sender always come from the arguments, never from the
    content payload. The message row and the chat preview/counter are written
    in one transaction.
    """

    chat = get_chat(chat_id)
    get_membership(chat, sender.pk)

    if message_type not in Message.Type.values:
        msg = f"Unsupported message type: {message_type}"
        raise InvalidState(msg)

    parsed = parse_content(content, message_type)
    reply_to = None
    if reply_to_id:
        reply_to = _get_message(reply_to_id)
        if reply_to.chat_id != chat.pk:
            raise MessageNotFound

    try:
        with transaction.atomic():
            message = Message.objects.create(
                chat=chat,
                sender=sender,
                message_type=message_type,
                content=parsed.as_json(),
                media=media or None,
                location=location or None,
                reply_to=reply_to,
            )
            Chat.objects.filter(pk=chat.pk).update(
                last_message={
                    "text": parsed.preview(message_type),
                    "sender": sender.pk,
                    "type": message_type,
                    "timestamp": message.created_at.isoformat(),
                },
                last_message_at=message.created_at,
                message_count=F("message_count") + 1,
                updated_at=timezone.now(),
            )
    except DatabaseError as exc:
        logger.warning("Could not persist message in chat %s: %s", chat.pk, exc)
        msg = "Failed to send message"
        raise PersistenceFailure(msg) from exc

    recipient_ids = list(
        chat.active_memberships()
        .exclude(user_id=sender.pk)
        .values_list("user_id", flat=True)
    )
    return SentMessage(message=message, recipient_ids=recipient_ids)


def mark_messages_read(chat_id: Any, user, message_ids: Iterable[Any]) -> list[str]:
    """Append a read receipt for ``user`` to the listed messages of the chat.

    Returns the ids of the listed messages that belong to the chat.
    """

    chat = get_chat(chat_id)
    membership = get_membership(chat, user.pk)
    now = timezone.now()

    with transaction.atomic():
        messages = list(
            Message.objects.select_for_update().filter(
                chat=chat,
                pk__in=_coerce_uuids(message_ids),
            )
        )
        for message in messages:
            if message.is_read_by(user.pk):
                continue
            message.read_by = [
                *message.read_by,
                {"user": user.pk, "read_at": now.isoformat()},
            ]
            message.save(update_fields=["read_by", "updated_at"])
        membership.last_read_at = now
        membership.save(update_fields=["last_read_at"])

    return [str(message.pk) for message in messages]


def history(
    chat_id: Any,
    user,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
    before: datetime | None = None,
) -> list[Message]:
    """Most recent ``limit`` messages (optionally older than ``before``), oldest first."""

    chat = get_chat_for_participant(chat_id, user)
    limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
    qs = chat.messages.select_related("sender")
    if before is not None:
        qs = qs.filter(created_at__lt=before)
    latest = list(qs.order_by("-created_at")[:limit])
    latest.reverse()
    return latest


def list_chats(user):
    return (
        Chat.objects.filter(
            is_active=True,
            memberships__user=user,
            memberships__is_active=True,
        )
        .prefetch_related("memberships__user")
        .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
        .distinct()
    )


def find_direct_chat(first_id: int, second_id: int) -> Chat | None:
    return (
        Chat.objects.filter(chat_type=Chat.Type.DIRECT, is_active=True)
        .filter(memberships__user_id=first_id)
        .filter(memberships__user_id=second_id)
        .first()
    )


@transaction.atomic
def create_chat(
    creator,
    participant_ids: Iterable[Any],
    chat_type: str = Chat.Type.DIRECT,
    name: str = "",
) -> Chat:
    unique_ids = _coerce_user_ids([creator.pk, *participant_ids])

    found = set(
        User.objects.filter(pk__in=unique_ids, is_active=True).values_list(
            "pk", flat=True
        )
    )
    if found != set(unique_ids):
        msg = "User not found"
        raise NotFound(msg)

    if chat_type == Chat.Type.DIRECT:
        if len(unique_ids) != 2:  # noqa: PLR2004
            msg = "Direct chats must have exactly 2 participants"
            raise InvalidState(msg)
        existing = find_direct_chat(*unique_ids)
        if existing is not None:
            raise ChatAlreadyExists(existing)
        name = ""
    elif chat_type != Chat.Type.GROUP:
        msg = f"Unsupported chat type: {chat_type}"
        raise InvalidState(msg)

    chat = Chat.objects.create(chat_type=chat_type, name=name, created_by=creator)
    ChatParticipant.objects.bulk_create(
        [
            ChatParticipant(
                chat=chat,
                user_id=pid,
                role=(
                    ChatParticipant.Role.OWNER
                    if pid == creator.pk
                    else ChatParticipant.Role.MEMBER
                ),
            )
            for pid in unique_ids
        ]
    )
    return chat


@transaction.atomic
def update_chat(
    chat_id: Any,
    user,
    *,
    name: str | None = None,
    add_participants: Iterable[Any] = (),
    remove_participants: Iterable[Any] = (),
) -> Chat:
    chat = get_chat_for_participant(chat_id, user)
    if chat.is_direct:
        msg = "Cannot modify direct chats"
        raise InvalidState(msg)
    if chat.created_by_id != user.pk:
        msg = "Only group creator can modify the chat"
        raise AccessDenied(msg)

    if name:
        chat.name = name
        chat.save(update_fields=["name", "updated_at"])

    add_ids = _coerce_user_ids(add_participants)
    if add_ids:
        valid_ids = User.objects.filter(pk__in=add_ids, is_active=True).values_list(
            "pk", flat=True
        )
        for pid in valid_ids:
            ChatParticipant.objects.update_or_create(
                chat=chat,
                user_id=pid,
                defaults={"is_active": True, "left_at": None},
            )

    remove_ids = _coerce_user_ids(remove_participants)
    if remove_ids:
        chat.memberships.filter(user_id__in=remove_ids, is_active=True).update(
            is_active=False,
            left_at=timezone.now(),
        )
    return chat


@transaction.atomic
def leave_chat(chat_id: Any, user) -> bool:
    """Leave a chat. Returns True when the chat itself was deleted.

    Direct chats are deleted outright; group chats are deleted once the last
    active participant leaves.
    """

    chat = get_chat_for_participant(chat_id, user)
    if chat.is_direct:
        chat.delete()
        return True
    chat.memberships.filter(user=user).update(is_active=False, left_at=timezone.now())
    if not chat.active_memberships().exists():
        chat.delete()
        return True
    return False


def edit_message(message_id: Any, user, content: Any) -> Message:
    message = _get_own_message(message_id, user)
    previous_at = message.edited_at or message.created_at
    parsed = parse_content(content, message.message_type)
    now = timezone.now()
    message.edit_history = [
        *message.edit_history,
        {
            "content": message.content,
            "edited_at": previous_at.isoformat(),
            "edited_by": user.pk,
        },
    ]
    message.content = parsed.as_json()
    message.is_edited = True
    message.edited_at = now
    message.save(
        update_fields=["content", "is_edited", "edited_at", "edit_history", "updated_at"]
    )
    return message


def react_to_message(message_id: Any, user, reaction: str | None) -> Message:
    """Set (or clear, when ``reaction`` is empty) the user's reaction."""

    message = _get_message(message_id)
    get_membership(message.chat, user.pk)
    reactions = [r for r in message.reactions if r.get("user") != user.pk]
    if reaction:
        reactions.append(
            {
                "user": user.pk,
                "reaction": reaction,
                "timestamp": timezone.now().isoformat(),
            }
        )
    message.reactions = reactions
    message.save(update_fields=["reactions", "updated_at"])
    return message


def delete_message(message_id: Any, user) -> Message:
    """Hard delete one of the user's own messages; returns the unsaved instance."""

    message = _get_own_message(message_id, user)
    chat_id = message.chat_id
    message_pk = message.pk
    with transaction.atomic():
        message.delete()
        Chat.objects.filter(pk=chat_id, message_count__gt=0).update(
            message_count=F("message_count") - 1
        )
    # Django clears the pk on delete; keep it for the caller's broadcast
    message.pk = message_pk
    return message


def edit_history(message_id: Any, user) -> list[dict]:
    message = _get_message(message_id)
    get_membership(message.chat, user.pk)
    return list(message.edit_history or [])
