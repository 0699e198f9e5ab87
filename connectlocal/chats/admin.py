from django.contrib import admin

from .models import Chat
from .models import ChatParticipant
from .models import Message


class ChatParticipantInline(admin.TabularInline):
    model = ChatParticipant
    extra = 0
    raw_id_fields = ["user"]
    readonly_fields = ["joined_at", "left_at", "last_read_at"]


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ["id", "chat_type", "name", "message_count", "last_message_at"]
    list_filter = ["chat_type", "is_active"]
    search_fields = ["name", "created_by__username"]
    raw_id_fields = ["created_by"]
    inlines = [ChatParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "chat", "sender", "message_type", "is_edited", "created_at"]
    list_filter = ["message_type", "is_edited"]
    raw_id_fields = ["chat", "sender", "reply_to"]
