from __future__ import annotations

from typing import Any

from rest_framework.response import Response
from rest_framework.views import exception_handler
from rest_framework.views import set_rollback

from connectlocal.core.exceptions import ServiceError


def service_exception_handler(exc: Exception, context: dict[str, Any]):
    """Render domain errors as ``{"success": false, "message": ...}``.

    Everything else keeps DRF's default rendering.
    """

    if isinstance(exc, ServiceError):
        set_rollback()
        return Response(
            {"success": False, "message": exc.message},
            status=exc.status_code,
        )
    return exception_handler(exc, context)
