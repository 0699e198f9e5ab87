from celery import shared_task
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q

from connectlocal.livechat.models import LiveChatSession
from connectlocal.notifications.models import Notification


@shared_task(name="livechat.notify_admins_new_session")
def notify_admins_new_session(session_id: str) -> int:
    """Persist one notification per active admin account for a new session.

    Returns:
        Number of notifications created.
    """
    session = LiveChatSession.objects.filter(pk=session_id).first()
    if session is None:
        return 0

    User = get_user_model()
    admin_ids = (
        User.objects.filter(is_active=True)
        .filter(Q(role=User.Role.ADMIN) | Q(is_superuser=True))
        .exclude(pk=session.user_id)
        .values_list("pk", flat=True)
    )
    with transaction.atomic():
        created = [
            Notification.objects.create(
                recipient_id=admin_id,
                sender_id=session.user_id,
                title="New Live Chat Session",
                message=(
                    "A user has started a new live chat session. "
                    f"Session ID: {session.pk}"
                ),
                notification_type=Notification.Type.LIVE_CHAT,
                priority=Notification.Priority.HIGH,
                related_link=f"/admin/livechat/sessions/{session.pk}",
                data={"sessionId": str(session.pk), "userId": session.user_id},
            )
            for admin_id in admin_ids
        ]
    return len(created)
