"""Presence Registry.

Presence is kept in a process-local map and mirrored into the shared cache
(``user:online:<id>``) so every server process can answer "is this user
online". The cache is advisory: when it is unreachable the registry keeps
working from the local map and logs a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.core.cache import caches
from django.utils import timezone

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from django.core.cache.backends.base import BaseCache

logger = logging.getLogger(__name__)

ONLINE_KEY = "user:online:{user_id}"


def online_key(user_id: int) -> str:
    return ONLINE_KEY.format(user_id=int(user_id))


@dataclass(frozen=True)
class PresenceEntry:
    connection_id: str
    last_seen_at: datetime


class PresenceRegistry:
    def __init__(self, cache: BaseCache | None = None, ttl: int | None = None):
        self.cache = cache if cache is not None else caches["default"]
        self.ttl = ttl if ttl is not None else settings.PRESENCE_TTL_SECONDS
        self._entries: dict[int, PresenceEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: object) -> bool:
        try:
            return int(user_id) in self._entries  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    def entry(self, user_id: int) -> PresenceEntry | None:
        return self._entries.get(int(user_id))

    async def mark_online(self, user_id: int, connection_id: str) -> None:
        """Register ``connection_id`` as the user's live connection (last one wins)."""

        user_id = int(user_id)
        self._entries[user_id] = PresenceEntry(connection_id, timezone.now())
        try:
            await self.cache.aset(online_key(user_id), connection_id, timeout=self.ttl)
        except Exception:  # noqa: BLE001 - presence must degrade, not crash
            logger.warning(
                "Presence cache unavailable; user %s tracked locally only",
                user_id,
                exc_info=True,
            )

    async def mark_offline(self, user_id: int, connection_id: str | None = None) -> bool:
        """Drop the user's presence.

        With ``connection_id`` the call only applies when that connection still
        owns the entry, so a late disconnect cannot knock a newer connection
        offline. Returns False when the entry belongs to another connection,
        here or on another process.
        """

        user_id = int(user_id)
        current = self._entries.get(user_id)
        if (
            connection_id is not None
            and current is not None
            and current.connection_id != connection_id
        ):
            return False
        self._entries.pop(user_id, None)

        key = online_key(user_id)
        try:
            if connection_id is not None:
                owner = await self.cache.aget(key)
                if owner is not None and owner != connection_id:
                    # Owned by a connection on another process
                    return False
            await self.cache.adelete(key)
        except Exception:  # noqa: BLE001 - presence must degrade, not crash
            logger.warning(
                "Presence cache unavailable; could not clear user %s",
                user_id,
                exc_info=True,
            )
        return True

    async def is_online(self, user_id: Any) -> bool:
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return False
        if user_id in self._entries:
            return True
        try:
            return await self.cache.aget(online_key(user_id)) is not None
        except Exception:  # noqa: BLE001 - presence must degrade, not crash
            logger.warning(
                "Presence cache unavailable; answering from local map for user %s",
                user_id,
                exc_info=True,
            )
            return False

    async def online_status(self, user_ids: Iterable[Any]) -> dict[str, bool]:
        return {str(uid): await self.is_online(uid) for uid in user_ids}
