import uuid

import pytest

from connectlocal.realtime.connection import Connection
from connectlocal.realtime.rooms import RoomRouter
from connectlocal.realtime.rooms import room_for_chat
from connectlocal.realtime.rooms import room_for_live_chat
from connectlocal.realtime.rooms import room_for_user
from tests.realtime import FakeSocketServer


def _connection(sid: str, user_id: int) -> Connection:
    return Connection(sid=sid, user_id=user_id, username=f"u{user_id}", display_name="")


def test_room_names_are_canonical():
    chat_id = uuid.uuid4()
    assert room_for_user("12") == "user_12"
    assert room_for_chat(str(chat_id).upper()) == f"chat_{chat_id}"
    assert room_for_chat(chat_id.hex) == room_for_chat(chat_id)
    assert room_for_live_chat(chat_id) == f"live_chat_{chat_id}"


@pytest.mark.asyncio
async def test_join_is_idempotent_and_tracked_on_the_connection():
    server = FakeSocketServer()
    router = RoomRouter(server)
    alice = _connection("a", 1)

    assert await router.join(alice, "chat_x") is True
    assert await router.join(alice, "chat_x") is False

    assert alice.rooms == {"chat_x"}
    assert router.subscribers("chat_x") == [alice]
    assert server.rooms["chat_x"] == {"a"}


@pytest.mark.asyncio
async def test_leave_removes_empty_rooms():
    server = FakeSocketServer()
    router = RoomRouter(server)
    alice = _connection("a", 1)
    await router.join(alice, "chat_x")

    assert await router.leave(alice, "chat_x") is True
    assert await router.leave(alice, "chat_x") is False
    assert "chat_x" not in router.rooms()
    assert "chat_x" not in server.rooms


@pytest.mark.asyncio
async def test_drop_connection_sweeps_every_membership():
    server = FakeSocketServer()
    router = RoomRouter(server)
    alice, bob = _connection("a", 1), _connection("b", 2)
    for room in ("user_1", "chat_x", "live_chat_y"):
        await router.join(alice, room)
    await router.join(bob, "chat_x")

    await router.drop_connection(alice)

    assert alice.rooms == set()
    assert router.rooms() == ["chat_x"]
    assert router.subscribers("chat_x") == [bob]
    assert not router.is_member(alice, "chat_x")


@pytest.mark.asyncio
async def test_broadcast_can_exclude_the_sender():
    server = FakeSocketServer()
    router = RoomRouter(server)
    alice, bob = _connection("a", 1), _connection("b", 2)
    await router.join(alice, "chat_x")
    await router.join(bob, "chat_x")

    await router.broadcast("chat_x", "user_typing", {"userId": 1}, exclude=alice)

    assert server.received("b", "user_typing") == [{"userId": 1}]
    assert server.received("a", "user_typing") == []
