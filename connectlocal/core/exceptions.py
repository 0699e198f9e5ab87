"""Error taxonomy shared by the REST API and the realtime layer.

Every class is a DRF ``APIException`` so views can simply let them propagate,
while Socket.IO handlers catch ``ServiceError`` and emit ``detail`` back to the
offending connection.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException


class ServiceError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."
    default_code = "service_error"

    @property
    def message(self) -> str:
        return str(self.detail)


class AuthenticationFailed(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication failed."
    default_code = "authentication_failed"


class AccessDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"
    default_code = "access_denied"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"
    default_code = "not_found"


class ChatNotFound(NotFound):
    default_detail = "Chat not found"
    default_code = "chat_not_found"


class MessageNotFound(NotFound):
    default_detail = "Message not found"
    default_code = "message_not_found"


class SessionNotFound(NotFound):
    default_detail = "Chat session not found"
    default_code = "session_not_found"


class InvalidState(ServiceError):
    default_detail = "Operation not allowed in the current state."
    default_code = "invalid_state"


class DuplicateSession(ServiceError):
    default_detail = "You already have an active chat session"
    default_code = "duplicate_session"


class PersistenceFailure(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage is temporarily unavailable."
    default_code = "persistence_failure"
