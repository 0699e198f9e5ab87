from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import TYPE_CHECKING
from typing import Any

from django.utils import timezone

if TYPE_CHECKING:  # import for type checking only
    from connectlocal.realtime.identity import UserIdentity

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(eq=False)
class Connection:
    """One authenticated Socket.IO connection.

    ``rooms`` is owned by the :class:`~connectlocal.realtime.rooms.RoomRouter`;
    nothing else mutates it.
    """

    sid: str
    user_id: int
    username: str
    display_name: str
    role: str = ROLE_USER
    connected_at: datetime = field(default_factory=timezone.now)
    rooms: set[str] = field(default_factory=set)

    @classmethod
    def from_identity(cls, sid: str, identity: UserIdentity) -> Connection:
        return cls(
            sid=sid,
            user_id=identity.user_id,
            username=identity.username,
            display_name=identity.display_name,
            role=identity.role,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def summary(self, *, with_role: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.user_id, "displayName": self.display_name}
        if with_role:
            data["role"] = self.role
        return data
