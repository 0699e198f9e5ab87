"""Message content variants.

Clients send ``content`` either as a bare string or as an object whose shape
depends on the message type. It is resolved once, when a message enters the
system, into a :class:`MessageContent`; nothing downstream inspects the raw
payload again.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any


class ContentKind(str, Enum):
    TEXT = "text"
    MEDIA = "media"
    LOCATION = "location"
    CONTACT = "contact"


_KIND_BY_MESSAGE_TYPE = {
    "image": ContentKind.MEDIA,
    "video": ContentKind.MEDIA,
    "audio": ContentKind.MEDIA,
    "file": ContentKind.MEDIA,
    "location": ContentKind.LOCATION,
    "contact": ContentKind.CONTACT,
}


@dataclass(frozen=True)
class MessageContent:
    kind: ContentKind
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def text_only(cls, text: str) -> MessageContent:
        return cls(kind=ContentKind.TEXT, body={"text": text})

    @property
    def text(self) -> str:
        value = self.body.get("text")
        return value if isinstance(value, str) else ""

    def preview(self, message_type: str) -> str:
        """Short text used for chat list previews."""
        return self.text or f"[{message_type}]"

    def as_json(self) -> dict[str, Any]:
        return dict(self.body)


def parse_content(raw: Any, message_type: str = "text") -> MessageContent:
    """Resolve client supplied content.

    A string becomes ``{"text": raw}``, a mapping is kept as is and tagged by
    the message type, anything else is an empty text body.
    """

    if isinstance(raw, str):
        return MessageContent.text_only(raw)
    if isinstance(raw, Mapping):
        kind = _KIND_BY_MESSAGE_TYPE.get(message_type, ContentKind.TEXT)
        return MessageContent(kind=kind, body=dict(raw))
    return MessageContent.text_only("")
