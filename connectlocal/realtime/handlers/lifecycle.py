"""Handshake and disconnect handlers."""

from __future__ import annotations

import logging
from typing import Any

from socketio.exceptions import ConnectionRefusedError as Refused

from connectlocal.core.exceptions import AuthenticationFailed
from connectlocal.realtime.hub import get_hub
from connectlocal.realtime.identity import REASON_UNAUTHORIZED
from connectlocal.realtime.identity import authenticate_token
from connectlocal.realtime.identity import extract_token

logger = logging.getLogger(__name__)


async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    """Authenticate the handshake; refusing it leaves no state behind."""

    token = extract_token(environ, auth)
    if not token:
        logger.info("Refused connection %s: no token", sid)
        raise Refused(REASON_UNAUTHORIZED)

    try:
        identity = await authenticate_token(token)
    except AuthenticationFailed as exc:
        logger.info("Refused connection %s: %s", sid, exc.message)
        raise Refused(exc.message) from exc
    except Exception as exc:
        logger.exception("Socket.IO connect error")
        msg = "server_error"
        raise Refused(msg) from exc

    await get_hub().connections.open(sid, identity)


async def disconnect(sid: str, *args: Any):
    # Newer python-socketio releases pass the disconnect reason
    await get_hub().connections.close(sid)
