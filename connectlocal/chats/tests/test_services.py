from datetime import timedelta
from unittest import mock

import pytest
from django.db import DatabaseError
from django.utils import timezone

from connectlocal.chats import services
from connectlocal.chats.models import Chat
from connectlocal.chats.models import ChatParticipant
from connectlocal.chats.models import Message
from connectlocal.core.exceptions import AccessDenied
from connectlocal.core.exceptions import ChatNotFound
from connectlocal.core.exceptions import InvalidState
from connectlocal.core.exceptions import MessageNotFound
from connectlocal.core.exceptions import NotFound
from connectlocal.core.exceptions import PersistenceFailure
from tests.factories import make_chat
from tests.factories import make_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def group(user, other_user) -> Chat:
    return make_chat(user, other_user, name="Street")


@pytest.fixture
def outsider():
    return make_user("mallory")


class TestCreateChat:
    def test_direct_chat_has_two_participants_and_an_owner(self, user, other_user):
        chat = services.create_chat(user, [other_user.pk])

        assert chat.chat_type == Chat.Type.DIRECT
        roles = dict(chat.memberships.values_list("user_id", "role"))
        assert roles == {
            user.pk: ChatParticipant.Role.OWNER,
            other_user.pk: ChatParticipant.Role.MEMBER,
        }

    def test_duplicate_direct_chat_is_rejected(self, user, other_user):
        chat = services.create_chat(user, [other_user.pk])

        with pytest.raises(services.ChatAlreadyExists) as excinfo:
            services.create_chat(other_user, [user.pk])
        assert excinfo.value.chat_id == chat.pk

    def test_direct_chat_needs_exactly_two(self, user, other_user, outsider):
        with pytest.raises(InvalidState, match="exactly 2 participants"):
            services.create_chat(user, [other_user.pk, outsider.pk])
        with pytest.raises(InvalidState):
            services.create_chat(user, [user.pk])

    def test_unknown_participant(self, user):
        with pytest.raises(NotFound, match="User not found"):
            services.create_chat(user, [999999], chat_type=Chat.Type.GROUP)


class TestSendMessage:
    def test_persists_and_updates_chat_preview(self, group, user, other_user):
        sent = services.send_message(group.pk, user, "hello")

        group.refresh_from_db()
        assert sent.message.content == {"text": "hello"}
        assert sent.recipient_ids == [other_user.pk]
        assert group.message_count == 1
        assert group.last_message["text"] == "hello"
        assert group.last_message["sender"] == user.pk

    def test_non_participant_is_denied(self, group, outsider):
        with pytest.raises(AccessDenied):
            services.send_message(group.pk, outsider, "hi")
        assert not Message.objects.exists()

    def test_former_participant_is_denied(self, group, user, other_user):
        services.leave_chat(group.pk, other_user)
        with pytest.raises(AccessDenied):
            services.send_message(group.pk, other_user, "hi")

    def test_unknown_chat(self, user):
        with pytest.raises(ChatNotFound):
            services.send_message("8b0c1f3e-0000-4000-8000-000000000000", user, "hi")

    def test_unsupported_type(self, group, user):
        with pytest.raises(InvalidState):
            services.send_message(group.pk, user, "hi", "sticker")

    def test_reply_must_stay_in_the_chat(self, group, user, other_user, outsider):
        elsewhere = make_chat(user, outsider, name="Other")
        foreign = services.send_message(elsewhere.pk, user, "x").message
        local = services.send_message(group.pk, user, "y").message

        with pytest.raises(MessageNotFound):
            services.send_message(group.pk, other_user, "re", reply_to_id=foreign.pk)
        reply = services.send_message(group.pk, other_user, "re", reply_to_id=local.pk)
        assert reply.message.reply_to_id == local.pk

    def test_database_error_becomes_persistence_failure(self, group, user):
        with mock.patch.object(
            Message.objects, "create", side_effect=DatabaseError("gone")
        ), pytest.raises(PersistenceFailure):
            services.send_message(group.pk, user, "hi")
        group.refresh_from_db()
        assert group.message_count == 0


def test_mark_read_is_idempotent_and_scoped_to_the_chat(group, user, other_user, outsider):
    message = services.send_message(group.pk, user, "one").message
    elsewhere = make_chat(user, outsider, name="Other")
    foreign = services.send_message(elsewhere.pk, user, "two").message

    read = services.mark_messages_read(group.pk, other_user, [message.pk, foreign.pk])
    services.mark_messages_read(group.pk, other_user, [message.pk])

    message.refresh_from_db()
    foreign.refresh_from_db()
    assert read == [str(message.pk)]
    assert [r["user"] for r in message.read_by] == [other_user.pk]
    assert foreign.read_by == []
    membership = group.memberships.get(user=other_user)
    assert membership.last_read_at is not None


def test_history_is_chronological_and_paginates_backwards(group, user):
    sent = [services.send_message(group.pk, user, str(i)).message for i in range(5)]
    base = timezone.now() - timedelta(minutes=10)
    for offset, message in enumerate(sent):
        Message.objects.filter(pk=message.pk).update(
            created_at=base + timedelta(minutes=offset)
        )

    latest = services.history(group.pk, user, limit=2)
    older = services.history(group.pk, user, limit=2, before=base + timedelta(minutes=3))

    assert [m.content["text"] for m in latest] == ["3", "4"]
    assert [m.content["text"] for m in older] == ["1", "2"]


def test_history_hides_chats_from_non_participants(group, outsider):
    with pytest.raises(ChatNotFound):
        services.history(group.pk, outsider)


def test_list_chats_orders_by_latest_activity(user, other_user, outsider):
    quiet = make_chat(user, other_user, name="Quiet")
    busy = make_chat(user, outsider, name="Busy")
    services.send_message(busy.pk, user, "ping")

    assert list(services.list_chats(user)) == [busy, quiet]
    assert list(services.list_chats(outsider)) == [busy]


class TestUpdateAndLeave:
    def test_direct_chats_are_immutable(self, user, other_user):
        chat = services.create_chat(user, [other_user.pk])
        with pytest.raises(InvalidState, match="Cannot modify direct chats"):
            services.update_chat(chat.pk, user, name="x")

    def test_only_creator_updates_group(self, group, other_user):
        with pytest.raises(AccessDenied, match="Only group creator"):
            services.update_chat(group.pk, other_user, name="Mine")

    def test_creator_renames_and_changes_members(self, group, user, other_user, outsider):
        services.update_chat(
            group.pk,
            user,
            name="Renamed",
            add_participants=[outsider.pk],
            remove_participants=[other_user.pk],
        )

        group.refresh_from_db()
        assert group.name == "Renamed"
        active = set(group.active_memberships().values_list("user_id", flat=True))
        assert active == {user.pk, outsider.pk}

    def test_leaving_direct_chat_deletes_it(self, user, other_user):
        chat = services.create_chat(user, [other_user.pk])
        assert services.leave_chat(chat.pk, other_user) is True
        assert not Chat.objects.filter(pk=chat.pk).exists()

    def test_group_is_deleted_when_last_member_leaves(self, group, user, other_user):
        assert services.leave_chat(group.pk, other_user) is False
        assert services.leave_chat(group.pk, user) is True
        assert not Chat.objects.filter(pk=group.pk).exists()


class TestMessageManagement:
    def test_edit_keeps_history(self, group, user):
        message = services.send_message(group.pk, user, "tpyo").message

        edited = services.edit_message(message.pk, user, "typo")

        assert edited.content == {"text": "typo"}
        assert edited.is_edited
        assert edited.edit_history[0]["content"] == {"text": "tpyo"}
        assert services.edit_history(message.pk, user) == edited.edit_history

    def test_only_sender_edits_or_deletes(self, group, user, other_user):
        message = services.send_message(group.pk, user, "mine").message
        with pytest.raises(MessageNotFound, match="unauthorized"):
            services.edit_message(message.pk, other_user, "yours")
        with pytest.raises(MessageNotFound):
            services.delete_message(message.pk, other_user)

    def test_reaction_replaces_and_clears(self, group, user, other_user):
        message = services.send_message(group.pk, user, "nice").message

        services.react_to_message(message.pk, other_user, "👍")
        services.react_to_message(message.pk, other_user, "🎉")
        both = services.react_to_message(message.pk, user, "👍")
        assert [r["reaction"] for r in both.reactions] == ["🎉", "👍"]

        cleared = services.react_to_message(message.pk, other_user, None)
        assert [r["user"] for r in cleared.reactions] == [user.pk]

    def test_reaction_requires_participation(self, group, user, outsider):
        message = services.send_message(group.pk, user, "nice").message
        with pytest.raises(AccessDenied):
            services.react_to_message(message.pk, outsider, "👀")

    def test_delete_decrements_count_and_keeps_id(self, group, user):
        message = services.send_message(group.pk, user, "oops").message

        deleted = services.delete_message(message.pk, user)

        group.refresh_from_db()
        assert deleted.pk == message.pk
        assert group.message_count == 0
        assert not Message.objects.filter(pk=message.pk).exists()
