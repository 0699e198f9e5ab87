from django.contrib import admin

from .models import LiveChatMessage
from .models import LiveChatSession


class LiveChatMessageInline(admin.TabularInline):
    model = LiveChatMessage
    extra = 0
    readonly_fields = ["sender", "sender_type", "message", "timestamp"]


@admin.register(LiveChatSession)
class LiveChatSessionAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "admin", "status", "started_at", "ended_at"]
    list_filter = ["status"]
    search_fields = ["user__username", "admin__username", "notes"]
    raw_id_fields = ["user", "admin"]
    inlines = [LiveChatMessageInline]
