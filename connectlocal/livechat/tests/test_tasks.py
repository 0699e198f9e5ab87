import pytest

from connectlocal.livechat.tasks import notify_admins_new_session
from connectlocal.notifications.models import Notification
from tests.factories import make_admin
from tests.factories import make_session
from tests.factories import make_user

pytestmark = pytest.mark.django_db


def test_one_notification_per_active_admin(user, admin_user):
    make_admin("retired", is_active=False)
    superuser = make_user("root", is_superuser=True)
    session = make_session(user)

    created = notify_admins_new_session(str(session.pk))

    assert created == 2
    recipients = set(Notification.objects.values_list("recipient_id", flat=True))
    assert recipients == {admin_user.pk, superuser.pk}
    notification = Notification.objects.get(recipient=admin_user)
    assert notification.priority == Notification.Priority.HIGH
    assert notification.notification_type == Notification.Type.LIVE_CHAT
    assert notification.related_link == f"/admin/livechat/sessions/{session.pk}"
    assert str(session.pk) in notification.message


def test_requester_who_is_admin_is_not_notified(admin_user):
    session = make_session(admin_user)
    assert notify_admins_new_session(str(session.pk)) == 0


def test_missing_session_is_ignored():
    assert notify_admins_new_session("5d2b7d0e-0000-4000-8000-000000000000") == 0
