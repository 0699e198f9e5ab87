from http import HTTPStatus

import pytest
from rest_framework.exceptions import ValidationError

from connectlocal.core.api.handlers import service_exception_handler
from connectlocal.core.exceptions import AccessDenied
from connectlocal.core.exceptions import ChatNotFound
from connectlocal.core.exceptions import DuplicateSession
from connectlocal.core.exceptions import NotFound
from connectlocal.core.exceptions import PersistenceFailure
from connectlocal.core.exceptions import SessionNotFound


def test_not_found_family_shares_status():
    assert issubclass(ChatNotFound, NotFound)
    assert issubclass(SessionNotFound, NotFound)
    assert ChatNotFound().status_code == HTTPStatus.NOT_FOUND
    assert SessionNotFound().message == "Chat session not found"


def test_custom_detail_overrides_default():
    exc = AccessDenied("Access denied to this chat")
    assert exc.message == "Access denied to this chat"
    assert exc.status_code == HTTPStatus.FORBIDDEN


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (DuplicateSession(), HTTPStatus.BAD_REQUEST),
        (AccessDenied(), HTTPStatus.FORBIDDEN),
        (PersistenceFailure(), HTTPStatus.SERVICE_UNAVAILABLE),
    ],
)
def test_handler_renders_service_errors(exc, status):
    response = service_exception_handler(exc, {})
    assert response.status_code == status
    assert response.data == {"success": False, "message": exc.message}


def test_handler_falls_back_to_drf_default():
    response = service_exception_handler(ValidationError({"name": ["bad"]}), {})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.data == {"name": ["bad"]}
