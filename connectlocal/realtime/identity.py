"""Handshake identity: token extraction and JWT verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from rest_framework.exceptions import AuthenticationFailed as DRFAuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.exceptions import TokenError

from connectlocal.core.exceptions import AuthenticationFailed
from connectlocal.realtime.connection import ROLE_ADMIN
from connectlocal.realtime.connection import ROLE_USER

logger = logging.getLogger(__name__)

REASON_UNAUTHORIZED = "unauthorized"
REASON_EXPIRED = "jwt_expired"


@dataclass(frozen=True)
class UserIdentity:
    user_id: int
    username: str
    display_name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def extract_token(environ: dict[str, Any] | None, auth: Any | None) -> str | None:
    """Extract the JWT from ``auth.token``, falling back to ``?token=``.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token
    return None


def resolve_identity(token: str) -> UserIdentity:
    """Verify ``token`` and load its user.

    Raises :class:`AuthenticationFailed` whose message is the refusal reason
    sent back to the client (``jwt_expired`` or ``unauthorized``).
    """

    jwt_auth = JWTAuthentication()
    try:
        validated = jwt_auth.get_validated_token(token)
    except (InvalidToken, TokenError) as exc:
        detail = str(getattr(exc, "detail", exc)).lower()
        reason = REASON_EXPIRED if "expired" in detail else REASON_UNAUTHORIZED
        raise AuthenticationFailed(reason) from exc
    try:
        # Missing user-id claim, unknown user and inactive user all land here
        user = jwt_auth.get_user(validated)
    except DRFAuthenticationFailed as exc:
        raise AuthenticationFailed(REASON_UNAUTHORIZED) from exc

    return UserIdentity(
        user_id=int(user.pk),
        username=user.username,
        display_name=user.display_name or user.username,
        role=ROLE_ADMIN if user.is_platform_admin else ROLE_USER,
    )


authenticate_token = database_sync_to_async(resolve_identity)
