from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Default custom user model for connectlocal.
    The realtime layer only reads ``role``, ``display_name`` and the presence
    mirror (``is_online`` / ``last_active``).
    """

    class Role(models.TextChoices):
        USER = "user", _("User")
        ADMIN = "admin", _("Admin")

    display_name = CharField(_("Display Name"), blank=True, max_length=255)
    role = CharField(
        _("Role"),
        max_length=20,
        choices=Role.choices,
        default=Role.USER,
    )
    # Presence mirror, best effort only; the realtime registry is authoritative
    is_online = models.BooleanField(default=False)
    last_active = models.DateTimeField(null=True, blank=True)
    # Audit timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        # Fall back to the full name, then the username
        if not self.display_name:
            full_name = f"{self.first_name} {self.last_name}".strip()
            self.display_name = full_name or self.username
        super().save(*args, **kwargs)

    @property
    def is_platform_admin(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_superuser

    def __str__(self) -> str:
        return self.username
