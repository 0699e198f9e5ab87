from rest_framework import serializers

from connectlocal.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Read serializer for notifications."""

    unread = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = (
            "id",
            "recipient",
            "sender",
            "title",
            "message",
            "notification_type",
            "priority",
            "is_read",
            "unread",
            "created_at",
            "related_link",
            "data",
        )
        read_only_fields = fields

    def get_unread(self, obj: Notification) -> bool:
        return not bool(obj.is_read)
