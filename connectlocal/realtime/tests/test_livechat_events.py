import asyncio
from datetime import timedelta

import pytest
from channels.db import database_sync_to_async
from django.utils import timezone

from connectlocal.livechat.models import LiveChatMessage
from connectlocal.livechat.models import LiveChatSession
from connectlocal.realtime.handlers import livechat as handlers
from tests.factories import make_admin
from tests.factories import make_session
from tests.factories import make_user
from tests.realtime import connect

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]


@pytest.fixture
def session(user) -> LiveChatSession:
    return make_session(user)


@pytest.fixture
def second_admin(db):
    return make_admin("support2")


@database_sync_to_async
def _reload(session_id) -> LiveChatSession:
    return LiveChatSession.objects.get(pk=session_id)


@database_sync_to_async
def _transcript(session_id) -> list[LiveChatMessage]:
    return list(LiveChatMessage.objects.filter(session_id=session_id))


async def test_requester_join_gets_info_and_others_are_told(
    hub, socket_server, user, admin_user, session
):
    await connect(hub, admin_user, "adm")
    await connect(hub, user, "usr")
    await handlers.join_live_chat("adm", str(session.pk))

    await handlers.join_live_chat("usr", {"sessionId": str(session.pk)})

    (info,) = socket_server.received("usr", "live_chat_session_info")
    assert info["session"]["id"] == str(session.pk)
    assert info["session"]["status"] == "active"
    assert socket_server.received("adm", "live_chat_user_joined")[-1]["user"] == {
        "id": user.pk,
        "displayName": "alice",
        "role": "user",
    }
    assert socket_server.received("usr", "live_chat_user_joined") == []
    assert hub.live_sessions.participants(session.pk) == {user.pk, admin_user.pk}


async def test_outsider_cannot_join_someone_elses_session(hub, socket_server, session):
    outsider = await database_sync_to_async(make_user)("mallory")
    connection = await connect(hub, outsider, "m")

    await handlers.join_live_chat("m", str(session.pk))

    assert socket_server.received("m", "live_chat_error") == [{"message": "Access denied"}]
    assert not hub.router.is_member(connection, f"live_chat_{session.pk}")
    assert session.pk not in hub.live_sessions


async def test_unknown_session_reports_not_found(hub, socket_server, user):
    await connect(hub, user, "usr")

    await handlers.join_live_chat("usr", "00000000-0000-0000-0000-000000000000")
    await handlers.join_live_chat("usr", {})

    assert socket_server.received("usr", "live_chat_error") == [
        {"message": "Chat session not found"},
        {"message": "Chat session not found"},
    ]


async def test_claim_broadcasts_exactly_once(hub, socket_server, user, admin_user, session):
    await connect(hub, user, "usr")
    await handlers.join_live_chat("usr", str(session.pk))
    await connect(hub, admin_user, "adm")

    await handlers.admin_join_live_chat("adm", str(session.pk))
    await handlers.admin_join_live_chat("adm", str(session.pk))

    joined = socket_server.received("usr", "admin_joined_live_chat")
    assert joined == [
        {
            "sessionId": str(session.pk),
            "admin": {"id": admin_user.pk, "displayName": "support"},
        }
    ]
    assert (await _reload(session.pk)).admin_id == admin_user.pk
    assert hub.router.is_member(hub.connections.get("adm"), f"live_chat_{session.pk}")
    assert socket_server.received("adm", "live_chat_error") == []


async def test_concurrent_claims_have_a_single_winner(
    hub, socket_server, admin_user, second_admin, session
):
    await connect(hub, admin_user, "x")
    await connect(hub, second_admin, "y")

    await asyncio.gather(
        handlers.admin_join_live_chat("x", str(session.pk)),
        handlers.admin_join_live_chat("y", str(session.pk)),
    )

    assert len(socket_server.events("admin_joined_live_chat")) == 1
    errors = socket_server.received("x", "live_chat_error") + socket_server.received(
        "y", "live_chat_error"
    )
    assert errors == [
        {"message": "This chat session is already being handled by another admin"}
    ]
    winner = (await _reload(session.pk)).admin_id
    assert winner in {admin_user.pk, second_admin.pk}


async def test_only_admins_can_claim(hub, socket_server, user, session):
    await connect(hub, user, "usr")

    await handlers.admin_join_live_chat("usr", str(session.pk))

    assert socket_server.received("usr", "live_chat_error") == [
        {"message": "Admin access required"}
    ]
    assert (await _reload(session.pk)).admin_id is None


async def test_user_message_pings_the_assigned_admin(
    hub, socket_server, user, admin_user, session
):
    await connect(hub, user, "usr")
    await connect(hub, admin_user, "adm")
    await handlers.join_live_chat("usr", str(session.pk))
    await handlers.admin_join_live_chat("adm", str(session.pk))
    socket_server.clear()

    await handlers.send_live_chat_message(
        "usr", {"sessionId": str(session.pk), "message": "  need help  "}
    )

    (broadcast,) = socket_server.received("usr", "new_live_chat_message")
    assert broadcast["message"]["message"] == "need help"
    assert broadcast["message"]["sender_type"] == "user"
    pings = socket_server.received("adm", "live_chat_notification")
    assert [p["type"] for p in pings] == ["new_message"]
    assert pings[0]["user"] == {"id": user.pk, "displayName": "alice"}


async def test_admin_message_is_tagged_from_the_account(
    hub, socket_server, user, admin_user, session
):
    await connect(hub, admin_user, "adm")
    await handlers.admin_join_live_chat("adm", str(session.pk))

    await handlers.send_live_chat_message(
        "adm", {"sessionId": str(session.pk), "message": "hello", "sender_type": "user"}
    )

    (message,) = await _transcript(session.pk)
    assert message.sender_type == LiveChatMessage.SenderType.ADMIN
    assert socket_server.received("adm", "live_chat_notification") == []


async def test_blank_and_late_messages_are_rejected(hub, socket_server, user, session):
    await connect(hub, user, "usr")

    await handlers.send_live_chat_message("usr", {"sessionId": str(session.pk), "message": " "})
    await handlers.end_live_chat_session("usr", {"sessionId": str(session.pk)})
    await handlers.send_live_chat_message(
        "usr", {"sessionId": str(session.pk), "message": "still there?"}
    )

    assert socket_server.received("usr", "live_chat_error") == [
        {"message": "Message is required"},
        {"message": "Can only send messages in active chat sessions"},
    ]
    assert await _transcript(session.pk) == []


async def test_admin_leave_releases_the_session(hub, socket_server, user, admin_user, session):
    await connect(hub, user, "usr")
    await connect(hub, admin_user, "adm")
    await handlers.join_live_chat("usr", str(session.pk))
    await handlers.admin_join_live_chat("adm", str(session.pk))

    await handlers.admin_leave_live_chat("adm", str(session.pk))

    assert socket_server.received("usr", "admin_left_live_chat") == [
        {
            "sessionId": str(session.pk),
            "admin": {"id": admin_user.pk, "displayName": "support"},
        }
    ]
    refreshed = await _reload(session.pk)
    assert refreshed.admin_id is None
    assert refreshed.status == LiveChatSession.Status.ACTIVE
    assert hub.admins.is_connected(admin_user.pk)


async def test_end_broadcasts_and_drops_bookkeeping(hub, socket_server, user, admin_user, session):
    await connect(hub, user, "usr")
    await connect(hub, admin_user, "adm")
    await handlers.join_live_chat("usr", str(session.pk))
    await handlers.admin_join_live_chat("adm", str(session.pk))

    await handlers.end_live_chat_session(
        "adm", {"sessionId": str(session.pk), "reason": "Resolved"}
    )
    await handlers.end_live_chat_session("usr", {"sessionId": str(session.pk)})

    (ended,) = socket_server.received("usr", "live_chat_session_ended")
    assert ended["reason"] == "Resolved"
    assert ended["endedBy"] == {"id": admin_user.pk, "displayName": "support", "role": "admin"}
    assert session.pk not in hub.live_sessions
    refreshed = await _reload(session.pk)
    assert refreshed.status == LiveChatSession.Status.ENDED
    assert refreshed.notes == "Resolved"
    assert refreshed.ended_at is not None
    assert socket_server.received("usr", "live_chat_error") == [
        {"message": "Can only end active chat sessions"}
    ]


async def test_leave_drops_bookkeeping_with_last_participant(
    hub, socket_server, user, admin_user, session
):
    await connect(hub, user, "usr")
    await connect(hub, admin_user, "adm")
    await handlers.join_live_chat("usr", str(session.pk))
    await handlers.join_live_chat("adm", str(session.pk))

    await handlers.leave_live_chat("usr", str(session.pk))
    assert session.pk in hub.live_sessions
    assert socket_server.received("adm", "live_chat_user_left")[0]["user"]["id"] == user.pk

    await handlers.leave_live_chat("adm", str(session.pk))
    assert session.pk not in hub.live_sessions
    assert (await _reload(session.pk)).status == LiveChatSession.Status.ACTIVE


async def test_leave_without_joining_announces_nothing(
    hub, socket_server, user, admin_user, session
):
    await connect(hub, user, "usr")
    await connect(hub, admin_user, "adm")
    await handlers.join_live_chat("usr", str(session.pk))

    await handlers.leave_live_chat("adm", str(session.pk))

    assert socket_server.received("usr", "live_chat_user_left") == []
    assert socket_server.received("adm", "live_chat_error") == []
    assert user.pk in hub.live_sessions.participants(session.pk)


async def test_typing_reaches_the_other_side(hub, socket_server, user, admin_user, session):
    await connect(hub, user, "usr")
    await connect(hub, admin_user, "adm")
    await handlers.join_live_chat("usr", str(session.pk))
    await handlers.join_live_chat("adm", str(session.pk))

    await handlers.live_chat_typing_start("adm", str(session.pk))
    await handlers.live_chat_typing_stop("adm", str(session.pk))

    assert socket_server.received("usr", "live_chat_user_typing") == [
        {
            "sessionId": str(session.pk),
            "userId": admin_user.pk,
            "username": "support",
            "isAdmin": True,
        }
    ]
    assert len(socket_server.received("usr", "live_chat_user_stop_typing")) == 1
    assert socket_server.received("adm", "live_chat_user_typing") == []


async def test_new_session_announcement_reaches_other_admins(
    hub, socket_server, user, admin_user, second_admin, session
):
    await connect(hub, admin_user, "x")
    await connect(hub, second_admin, "y")
    await connect(hub, user, "usr")

    await handlers.new_live_chat_session("x", str(session.pk))
    await handlers.new_live_chat_session("usr", str(session.pk))

    (announcement,) = socket_server.received("y", "live_chat_notification")
    assert announcement["type"] == "new_session"
    assert announcement["sessionId"] == str(session.pk)
    assert socket_server.received("x", "live_chat_notification") == []
    assert socket_server.received("usr", "live_chat_notification") == []
    assert socket_server.received("usr", "live_chat_error") == [
        {"message": "Admin access required"}
    ]


async def test_available_sessions_are_first_in_first_out(hub, socket_server, admin_user, user):
    @database_sync_to_async
    def _queue():
        late = make_session(user)
        early = make_session(make_user("carol"))
        claimed = make_session(make_user("dave"), admin=admin_user)
        LiveChatSession.objects.filter(pk=early.pk).update(
            started_at=timezone.now() - timedelta(minutes=5)
        )
        return late, early, claimed

    late, early, _ = await _queue()
    await connect(hub, admin_user, "adm")

    await handlers.get_available_live_chats("adm")

    (reply,) = socket_server.received("adm", "available_live_chats")
    assert [s["id"] for s in reply["sessions"]] == [str(early.pk), str(late.pk)]
