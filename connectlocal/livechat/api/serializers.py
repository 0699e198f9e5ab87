from rest_framework import serializers

from connectlocal.livechat.models import LiveChatMessage
from connectlocal.livechat.models import LiveChatSession
from connectlocal.users.api.serializers import UserSummarySerializer


class LiveChatSessionSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    admin = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = LiveChatSession
        fields = (
            "id",
            "user",
            "admin",
            "status",
            "started_at",
            "ended_at",
            "notes",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class LiveChatMessageSerializer(serializers.ModelSerializer):
    session_id = serializers.UUIDField(read_only=True)
    sender_id = serializers.IntegerField(read_only=True)
    sender = UserSummarySerializer(read_only=True)

    class Meta:
        model = LiveChatMessage
        fields = (
            "id",
            "session_id",
            "sender_id",
            "sender",
            "sender_type",
            "message",
            "timestamp",
        )
        read_only_fields = fields


class SessionListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=LiveChatSession.Status.choices, required=False
    )
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(
        required=False, min_value=1, max_value=100, default=20
    )
