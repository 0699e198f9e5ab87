from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    fieldsets = (
        *BaseUserAdmin.fieldsets,
        (_("Community"), {"fields": ("display_name", "role")}),
        (_("Presence"), {"fields": ("is_online", "last_active")}),
    )
    list_display = ["username", "display_name", "role", "is_online", "is_superuser"]
    list_filter = ["role", "is_online", "is_active"]
    search_fields = ["username", "display_name", "email"]
    readonly_fields = ["is_online", "last_active"]
