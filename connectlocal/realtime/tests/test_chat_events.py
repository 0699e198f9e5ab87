from unittest import mock

import pytest
from channels.db import database_sync_to_async
from django.db import DatabaseError

from connectlocal.chats import services
from connectlocal.chats.models import Chat
from connectlocal.chats.models import Message
from connectlocal.notifications.models import Notification
from connectlocal.realtime.handlers import chat as handlers
from tests.factories import make_chat
from tests.factories import make_user
from tests.realtime import connect

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]


@pytest.fixture
def chat(user, other_user) -> Chat:
    return make_chat(user, other_user)


@pytest.fixture
def outsider(db):
    return make_user("mallory")


@database_sync_to_async
def _messages(chat_id):
    return list(Message.objects.filter(chat_id=chat_id).order_by("created_at"))


@database_sync_to_async
def _reload(chat_id):
    return Chat.objects.get(pk=chat_id)


async def _join_both(hub, user, other_user, chat):
    await connect(hub, user, "a")
    await connect(hub, other_user, "b")
    await handlers.join_chat("a", str(chat.pk))
    await handlers.join_chat("b", {"chatId": str(chat.pk)})


async def test_participant_receives_new_message(hub, socket_server, user, other_user, chat):
    await _join_both(hub, user, other_user, chat)

    await handlers.send_message("a", {"chatId": str(chat.pk), "content": "hi", "type": "text"})

    delivered = socket_server.received("b", "new_message")
    assert len(delivered) == 1
    message = delivered[0]["message"]
    assert message["content"]["text"] == "hi"
    assert message["sender_id"] == user.pk
    assert message["sender"] == {
        "id": user.pk,
        "username": "alice",
        "display_name": "alice",
    }
    refreshed = await _reload(chat.pk)
    assert refreshed.message_count == 1
    assert refreshed.last_message["text"] == "hi"
    assert refreshed.last_message_at is not None


async def test_spoofed_identity_in_payload_is_ignored(hub, user, other_user, chat):
    await _join_both(hub, user, other_user, chat)

    await handlers.send_message(
        "a",
        {
            "chatId": str(chat.pk),
            "senderId": other_user.pk,
            "sender_id": other_user.pk,
            "content": {"text": "from alice", "senderId": other_user.pk},
        },
    )

    (message,) = await _messages(chat.pk)
    assert message.sender_id == user.pk
    assert message.chat_id == chat.pk


async def test_structured_and_invalid_content_are_normalized(hub, user, other_user, chat):
    await _join_both(hub, user, other_user, chat)

    await handlers.send_message(
        "a",
        {
            "chatId": str(chat.pk),
            "type": "location",
            "content": {"lat": 1.5, "lng": 2.5},
        },
    )
    await handlers.send_message("a", {"chatId": str(chat.pk), "content": 42})

    first, second = await _messages(chat.pk)
    assert first.content == {"lat": 1.5, "lng": 2.5}
    assert first.message_type == "location"
    assert second.content == {"text": ""}


async def test_non_participant_is_denied_without_side_effects(
    hub, socket_server, user, other_user, outsider, chat
):
    await _join_both(hub, user, other_user, chat)
    await connect(hub, outsider, "m")

    await handlers.send_message("m", {"chatId": str(chat.pk), "content": "spam"})

    assert socket_server.received("m", "error") == [{"message": "Access denied to this chat"}]
    assert socket_server.events("new_message") == []
    assert await _messages(chat.pk) == []


async def test_unknown_chat_reports_not_found(hub, socket_server, user):
    await connect(hub, user, "a")

    await handlers.send_message(
        "a", {"chatId": "00000000-0000-0000-0000-000000000000", "content": "hi"}
    )
    await handlers.send_message("a", {"chatId": "not-a-uuid", "content": "hi"})

    assert socket_server.received("a", "error") == [
        {"message": "Chat not found"},
        {"message": "Chat not found"},
    ]


async def test_persistence_failure_never_broadcasts(
    hub, socket_server, user, other_user, chat
):
    await _join_both(hub, user, other_user, chat)

    with mock.patch.object(
        Message.objects, "create", side_effect=DatabaseError("disk full")
    ):
        await handlers.send_message("a", {"chatId": str(chat.pk), "content": "hi"})

    assert socket_server.received("a", "error") == [{"message": "Failed to send message"}]
    assert socket_server.received("b", "error") == []
    assert socket_server.events("new_message") == []
    assert (await _reload(chat.pk)).message_count == 0


async def test_join_chat_requires_participation(hub, socket_server, outsider, chat):
    connection = await connect(hub, outsider, "m")

    await handlers.join_chat("m", str(chat.pk))

    assert socket_server.received("m", "error") == [{"message": "Access denied to this chat"}]
    assert not hub.router.is_member(connection, f"chat_{chat.pk}")


async def test_leave_chat_stops_delivery(hub, socket_server, user, other_user, chat):
    await _join_both(hub, user, other_user, chat)

    await handlers.leave_chat("b", str(chat.pk))
    await handlers.send_message("a", {"chatId": str(chat.pk), "content": "hi"})

    assert socket_server.received("b", "new_message") == []
    assert len(socket_server.received("a", "new_message")) == 1


async def test_typing_indicators_exclude_sender(hub, socket_server, user, other_user, chat):
    await _join_both(hub, user, other_user, chat)

    await handlers.typing_start("a", str(chat.pk))
    await handlers.typing_stop("a", {"chatId": str(chat.pk)})

    assert socket_server.received("b", "user_typing") == [
        {"chatId": str(chat.pk), "userId": user.pk, "username": "alice"}
    ]
    assert socket_server.received("b", "user_stop_typing") == [
        {"chatId": str(chat.pk), "userId": user.pk}
    ]
    assert socket_server.received("a", "user_typing") == []


async def test_mark_read_persists_receipts_and_broadcasts(
    hub, socket_server, user, other_user, chat
):
    await _join_both(hub, user, other_user, chat)
    await handlers.send_message("a", {"chatId": str(chat.pk), "content": "one"})
    (message,) = await _messages(chat.pk)

    await handlers.mark_read(
        "b", {"chatId": str(chat.pk), "messageIds": [str(message.pk), "bogus"]}
    )
    await handlers.mark_read("b", {"chatId": str(chat.pk), "messageIds": [str(message.pk)]})

    (message,) = await _messages(chat.pk)
    assert [entry["user"] for entry in message.read_by] == [other_user.pk]
    receipts = socket_server.received("a", "messages_read")
    assert receipts[0] == {
        "chatId": str(chat.pk),
        "userId": other_user.pk,
        "messageIds": [str(message.pk)],
    }


async def test_get_online_status_answers_only_the_caller(hub, socket_server, user, other_user):
    await connect(hub, user, "a")

    await handlers.get_online_status("a", [user.pk, other_user.pk])

    assert socket_server.events("online_status_response")[0].recipients == {"a"}
    assert socket_server.received("a", "online_status_response") == [
        {str(user.pk): True, str(other_user.pk): False}
    ]


async def test_offline_participant_gets_a_notification(hub, user, other_user, chat):
    await connect(hub, user, "a")

    await handlers.send_message("a", {"chatId": str(chat.pk), "content": "are you there?"})

    notifications = await database_sync_to_async(list)(
        Notification.objects.filter(recipient=other_user)
    )
    assert len(notifications) == 1
    assert notifications[0].notification_type == Notification.Type.NEW_MESSAGE
    assert notifications[0].related_link == f"/chats/{chat.pk}"
    assert not await database_sync_to_async(
        Notification.objects.filter(recipient=user).exists
    )()


async def test_sent_message_round_trips_through_history(hub, user, other_user, chat):
    await _join_both(hub, user, other_user, chat)
    await handlers.send_message(
        "a", {"chatId": str(chat.pk), "content": {"url": "https://x/y.png"}, "type": "image"}
    )

    (fetched,) = await database_sync_to_async(services.history)(chat.pk, other_user)

    assert fetched.content == {"url": "https://x/y.png"}
    assert fetched.sender_id == user.pk
    assert fetched.message_type == "image"


async def test_events_from_unknown_connections_are_ignored(socket_server, chat):
    await handlers.send_message("ghost", {"chatId": str(chat.pk), "content": "hi"})

    assert socket_server.emitted == []
    assert await _messages(chat.pk) == []
