import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class LiveChatSession(models.Model):
    """A user-initiated support session.

    ``active`` without an admin is the queued state; ``active`` with an admin
    is the claimed state. ``ended`` and ``cancelled`` are terminal.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        ENDED = "ended", _("Ended")
        CANCELLED = "cancelled", _("Cancelled")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="live_chat_sessions",
    )
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="handled_live_chat_sessions",
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True
    )
    started_at = models.DateTimeField(default=timezone.now)
    ended_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=Q(status="active"),
                name="unique_active_live_chat_per_user",
            ),
        ]
        indexes = [
            models.Index(
                fields=["status", "admin", "started_at"],
                name="livechat_queue_idx",
            ),
        ]

    def __str__(self):
        return f"LiveChatSession({self.pk}, {self.status})"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def is_claimed(self) -> bool:
        return self.admin_id is not None

    def can_access(self, user) -> bool:
        """Requester, assigned admin, or any platform admin."""
        return (
            self.user_id == user.pk
            or self.admin_id == user.pk
            or bool(getattr(user, "is_platform_admin", False))
        )


class LiveChatMessage(models.Model):
    class SenderType(models.TextChoices):
        USER = "user", _("User")
        ADMIN = "admin", _("Admin")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session = models.ForeignKey(
        LiveChatSession, on_delete=models.CASCADE, related_name="messages"
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="live_chat_messages",
    )
    sender_type = models.CharField(max_length=10, choices=SenderType.choices)
    message = models.TextField()
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["timestamp"]

    def __str__(self):
        return f"{self.sender_type}:{self.sender_id} in {self.session_id}"
