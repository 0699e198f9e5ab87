from rest_framework import serializers

from connectlocal.users.models import User


class UserSerializer(serializers.ModelSerializer[User]):
    id = serializers.IntegerField(read_only=True)

    # Identity and authorization fields are never client-writable
    username = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "display_name",
            "role",
            "is_online",
            "last_active",
        ]
        read_only_fields = ["is_online", "last_active"]


class UserSummarySerializer(serializers.ModelSerializer[User]):
    """Minimal projection embedded in chat and live-chat payloads."""

    class Meta:
        model = User
        fields = ["id", "username", "display_name"]
        read_only_fields = fields
