"""Socket.IO event handlers.

Handlers receive ``(hub, connection, data)``; :func:`socket_handler` resolves
the connection from the Socket.IO ``sid`` and turns domain errors into an
error event sent to that connection only.
"""

from __future__ import annotations

import functools
import logging
from typing import Any

from channels.db import database_sync_to_async
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from connectlocal.core.exceptions import AuthenticationFailed
from connectlocal.core.exceptions import ServiceError
from connectlocal.realtime.hub import get_hub

logger = logging.getLogger(__name__)


def socket_handler(error_event: str = "error", failure_message: str = "Request failed"):
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(sid: str, *args: Any):
            hub = get_hub()
            connection = hub.connections.get(sid)
            if connection is None:
                logger.warning("Ignoring %s from unknown connection %s", func.__name__, sid)
                return
            try:
                await func(hub, connection, *args)
            except ServiceError as exc:
                logger.info(
                    "%s rejected for user %s: %s",
                    func.__name__,
                    connection.user_id,
                    exc.message,
                )
                await hub.router.emit_to_connection(
                    connection, error_event, {"message": exc.message}
                )
            except DatabaseError:
                logger.warning("Storage error in %s", func.__name__, exc_info=True)
                await hub.router.emit_to_connection(
                    connection, error_event, {"message": failure_message}
                )
            except Exception:
                logger.exception("Unhandled error in %s", func.__name__)
                await hub.router.emit_to_connection(
                    connection, error_event, {"message": failure_message}
                )

        return wrapper

    return decorator


@database_sync_to_async
def run_as_user(user_id: int, func, *args: Any, **kwargs: Any):
    """Load the connection's user and call ``func(user, ...)`` off the event loop."""

    User = get_user_model()
    user = User.objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        msg = "User not found"
        raise AuthenticationFailed(msg)
    return func(user, *args, **kwargs)


def field(data: Any, *names: str) -> Any:
    """First present key of a dict payload, or the payload itself when scalar."""

    if isinstance(data, dict):
        for name in names:
            value = data.get(name)
            if value is not None:
                return value
        return None
    return data
