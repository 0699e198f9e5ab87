from celery import shared_task

from connectlocal.notifications.models import Notification


@shared_task(name="notifications.notify_offline_recipient")
def notify_offline_recipient(
    recipient_id: int,
    sender_id: int,
    chat_id: str,
    message_id: str,
    preview: str,
) -> int:
    """Record a new-message notification for a participant who is offline.

    Returns:
        The id of the created notification.
    """
    notification = Notification.objects.create(
        recipient_id=recipient_id,
        sender_id=sender_id,
        title="New Message",
        message=preview[:500],
        notification_type=Notification.Type.NEW_MESSAGE,
        related_link=f"/chats/{chat_id}",
        data={"chatId": chat_id, "messageId": message_id},
    )
    return notification.pk
