"""``/health/`` probe: database, presence cache and Socket.IO queue."""

from __future__ import annotations

from typing import Any

import redis
from django.conf import settings
from django.core.cache import caches
from django.db import connection
from django.db import transaction
from django.http import JsonResponse

PROBE_KEY = "health:probe"


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    return {"ok": True}


def check_cache() -> dict[str, Any]:
    """Round-trip through the cache that backs cross-process presence."""

    cache = caches["default"]
    try:
        cache.set(PROBE_KEY, "1", timeout=5)
        ok = cache.get(PROBE_KEY) == "1"
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    return {"ok": ok} if ok else {"ok": False, "error": "cache round-trip failed"}


def check_socketio_queue() -> dict[str, Any] | None:
    if not settings.SOCKETIO_USE_REDIS_MANAGER:
        return None
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            socket_timeout=0.5,
            socket_connect_timeout=0.5,
        )
        client.ping()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    return {"ok": True}


@transaction.non_atomic_requests
def health(request):
    components = {"db": check_db(), "cache": check_cache()}
    queue = check_socketio_queue()
    if queue is not None:
        components["socketio_queue"] = queue

    results = [c["ok"] for c in components.values()]
    if all(results):
        state, http_status = "ok", 200
    elif any(results):
        state, http_status = "degraded", 503
    else:
        state, http_status = "down", 503

    return JsonResponse({"status": state, "components": components}, status=http_status)
