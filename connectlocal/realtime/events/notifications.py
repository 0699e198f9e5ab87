from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from connectlocal.realtime.hub import emit_event_to_user

if TYPE_CHECKING:  # import for type checking only
    from connectlocal.notifications.models import Notification


def build_notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.notification_type,
        "priority": notification.priority,
        "link": notification.related_link,
        "data": notification.data,
    }


def publish_notification_created(notification: Notification) -> None:
    """Publish a newly created Notification to the recipient in realtime."""

    payload = build_notification_payload(notification)
    emit_event_to_user(notification.recipient_id, "notification", payload)
