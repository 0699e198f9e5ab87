from __future__ import annotations

from rest_framework import serializers

from connectlocal.chats.models import Chat
from connectlocal.chats.models import ChatParticipant
from connectlocal.chats.models import Message
from connectlocal.users.api.serializers import UserSummarySerializer


class MessageSerializer(serializers.ModelSerializer):
    """Read serializer shared by the REST API and the realtime broadcasts.

    ``sender`` is the minimal projection, never the full user record.
    """

    chat_id = serializers.UUIDField(read_only=True)
    sender_id = serializers.IntegerField(read_only=True)
    sender = UserSummarySerializer(read_only=True)
    reply_to_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Message
        fields = (
            "id",
            "chat_id",
            "sender_id",
            "sender",
            "message_type",
            "content",
            "media",
            "location",
            "reply_to_id",
            "read_by",
            "reactions",
            "is_edited",
            "edited_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class SendMessageSerializer(serializers.Serializer):
    # A bare string or a structured object, resolved by the service
    content = serializers.JSONField()
    type = serializers.ChoiceField(
        choices=Message.Type.choices,
        required=False,
        default=Message.Type.TEXT,
    )
    media = serializers.JSONField(required=False, allow_null=True, default=None)
    location = serializers.JSONField(required=False, allow_null=True, default=None)
    reply_to_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class EditMessageSerializer(serializers.Serializer):
    content = serializers.JSONField()


class ReactionSerializer(serializers.Serializer):
    reaction = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=32
    )


class ChatParticipantSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ChatParticipant
        fields = ("user", "role", "joined_at", "last_read_at")
        read_only_fields = fields


class ChatSerializer(serializers.ModelSerializer):
    created_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    participants = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = (
            "id",
            "chat_type",
            "name",
            "created_by_id",
            "participants",
            "last_message",
            "last_message_at",
            "message_count",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_participants(self, obj: Chat) -> list[dict]:
        memberships = [m for m in obj.memberships.all() if m.is_active]
        return ChatParticipantSerializer(memberships, many=True).data


class ChatCreateSerializer(serializers.Serializer):
    participants = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
    )
    type = serializers.ChoiceField(
        choices=Chat.Type.choices,
        required=False,
        default=Chat.Type.DIRECT,
    )
    name = serializers.CharField(required=False, allow_blank=True, default="")


class ChatUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    add_participants = serializers.ListField(
        child=serializers.IntegerField(min_value=1), required=False, default=list
    )
    remove_participants = serializers.ListField(
        child=serializers.IntegerField(min_value=1), required=False, default=list
    )


class HistoryQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=50)
    before = serializers.DateTimeField(required=False, allow_null=True, default=None)
