"""Live-support hand-off state machine.

A session is queued while ``active`` without an admin and claimed once an
admin is assigned; ``ended`` and ``cancelled`` are terminal. Start, claim,
release, end and cancel are single conditional writes, so the loser of a
concurrent transition sees the winner's state instead of overwriting it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db import IntegrityError
from django.db import transaction
from django.utils import timezone

from connectlocal.core.exceptions import AccessDenied
from connectlocal.core.exceptions import DuplicateSession
from connectlocal.core.exceptions import InvalidState
from connectlocal.core.exceptions import PersistenceFailure
from connectlocal.core.exceptions import SessionNotFound
from connectlocal.livechat.models import LiveChatMessage
from connectlocal.livechat.models import LiveChatSession

logger = logging.getLogger(__name__)

Status = LiveChatSession.Status

DEFAULT_END_NOTES = "Session ended by user"


@dataclass(frozen=True)
class ClaimResult:
    session: LiveChatSession
    newly_claimed: bool


def _require_admin(user) -> None:
    if not getattr(user, "is_platform_admin", False):
        msg = "Admin access required"
        raise AccessDenied(msg)


def get_session(session_id: Any) -> LiveChatSession:
    try:
        return LiveChatSession.objects.select_related("user", "admin").get(
            pk=session_id
        )
    except (LiveChatSession.DoesNotExist, ValidationError, ValueError) as exc:
        raise SessionNotFound from exc


def get_session_for(session_id: Any, user) -> LiveChatSession:
    session = get_session(session_id)
    if not session.can_access(user):
        raise AccessDenied
    return session


def _queue_admin_notifications(session_id: str) -> None:
    from connectlocal.livechat.tasks import notify_admins_new_session  # noqa: PLC0415

    try:
        notify_admins_new_session.delay(session_id)
    except Exception:  # noqa: BLE001 - notifications are best effort
        logger.warning(
            "Could not queue admin notifications for live chat %s",
            session_id,
            exc_info=True,
        )


def start_session(user) -> LiveChatSession:
    """Open a new session for ``user``; at most one may be active at a time."""

    if LiveChatSession.objects.filter(user=user, status=Status.ACTIVE).exists():
        raise DuplicateSession
    try:
        with transaction.atomic():
            session = LiveChatSession.objects.create(user=user)
    except IntegrityError as exc:
        # Lost the race against a concurrent start for the same user
        raise DuplicateSession from exc

    transaction.on_commit(partial(_queue_admin_notifications, str(session.pk)))
    logger.info("Live chat %s started by user %s", session.pk, user.pk)
    return get_session(session.pk)


def claim_session(session_id: Any, admin) -> ClaimResult:
    """Assign ``admin`` to an active, unclaimed session. First writer wins."""

    _require_admin(admin)
    session = get_session(session_id)
    claimed = LiveChatSession.objects.filter(
        pk=session.pk,
        status=Status.ACTIVE,
        admin__isnull=True,
    ).update(admin=admin, updated_at=timezone.now())

    session = get_session(session.pk)
    if claimed:
        logger.info("Live chat %s claimed by admin %s", session.pk, admin.pk)
        return ClaimResult(session=session, newly_claimed=True)
    if session.status != Status.ACTIVE:
        msg = "Can only join active chat sessions"
        raise InvalidState(msg)
    if session.admin_id == admin.pk:
        return ClaimResult(session=session, newly_claimed=False)
    msg = "This chat session is already being handled by another admin"
    raise AccessDenied(msg)


def release_session(session_id: Any, admin) -> LiveChatSession:
    """Return a claimed session to the queue. Only the assigned admin may."""

    _require_admin(admin)
    session = get_session(session_id)
    released = LiveChatSession.objects.filter(
        pk=session.pk,
        status=Status.ACTIVE,
        admin=admin,
    ).update(admin=None, updated_at=timezone.now())
    if not released:
        if session.status != Status.ACTIVE:
            msg = "Can only leave active chat sessions"
            raise InvalidState(msg)
        msg = "You are not assigned to this chat session"
        raise AccessDenied(msg)
    return get_session(session.pk)


def post_message(session_id: Any, sender, text: Any) -> LiveChatMessage:
    body = text.strip() if isinstance(text, str) else ""
    if not body:
        msg = "Message is required"
        raise InvalidState(msg)

    session = get_session_for(session_id, sender)
    if session.status != Status.ACTIVE:
        msg = "Can only send messages in active chat sessions"
        raise InvalidState(msg)

    # Derived from the account, never from the client
    sender_type = (
        LiveChatMessage.SenderType.ADMIN
        if sender.is_platform_admin
        else LiveChatMessage.SenderType.USER
    )
    try:
        message = LiveChatMessage.objects.create(
            session=session,
            sender=sender,
            sender_type=sender_type,
            message=body,
        )
    except DatabaseError as exc:
        logger.warning("Could not persist live chat message in %s: %s", session.pk, exc)
        msg = "Failed to send message"
        raise PersistenceFailure(msg) from exc
    # Reuse the loaded session so callers see the assigned admin
    message.session = session
    return message


def end_session(session_id: Any, user, notes: str | None = None) -> LiveChatSession:
    session = get_session_for(session_id, user)
    now = timezone.now()
    ended = LiveChatSession.objects.filter(pk=session.pk, status=Status.ACTIVE).update(
        status=Status.ENDED,
        ended_at=now,
        notes=notes or DEFAULT_END_NOTES,
        updated_at=now,
    )
    if not ended:
        msg = "Can only end active chat sessions"
        raise InvalidState(msg)
    logger.info("Live chat %s ended by user %s", session.pk, user.pk)
    return get_session(session.pk)


def cancel_session(session_id: Any, admin, notes: str | None = None) -> LiveChatSession:
    if not getattr(admin, "is_platform_admin", False):
        msg = "Access denied. Admin privileges required."
        raise AccessDenied(msg)
    session = get_session(session_id)
    now = timezone.now()
    fields: dict[str, Any] = {
        "status": Status.CANCELLED,
        "ended_at": now,
        "updated_at": now,
    }
    if notes:
        fields["notes"] = notes
    cancelled = LiveChatSession.objects.filter(
        pk=session.pk, status=Status.ACTIVE
    ).update(**fields)
    if not cancelled:
        msg = "Can only cancel active chat sessions"
        raise InvalidState(msg)
    logger.info("Live chat %s cancelled by admin %s", session.pk, admin.pk)
    return get_session(session.pk)


def delete_session(session_id: Any, admin) -> None:
    if not getattr(admin, "is_platform_admin", False):
        msg = "Access denied. Admin privileges required."
        raise AccessDenied(msg)
    get_session(session_id).delete()


def available_sessions():
    """Queued sessions, oldest first."""
    return (
        LiveChatSession.objects.filter(status=Status.ACTIVE, admin__isnull=True)
        .select_related("user")
        .order_by("started_at", "created_at")
    )


def list_sessions(status: str | None = None):
    qs = LiveChatSession.objects.select_related("user", "admin").order_by("-created_at")
    if status:
        qs = qs.filter(status=status)
    return qs


def user_sessions(user, status: str | None = None):
    return list_sessions(status).filter(user=user)


def session_messages(session_id: Any, user):
    """Transcript of a session for its requester or any admin."""

    session = get_session(session_id)
    if session.user_id != user.pk and not user.is_platform_admin:
        raise AccessDenied
    return session.messages.select_related("sender").order_by("timestamp")
