"""drf-spectacular post-processing: one feature tag per operation."""

from __future__ import annotations

from typing import Any

_HTTP_METHODS = {"get", "post", "put", "patch", "delete", "options", "head"}

PATTERN_TAGS = [
    ("/api/v1/auth/", "Authentication"),
    ("/api/v1/chats", "Chats"),
    ("/api/v1/messages", "Messages"),
    ("/api/v1/livechat", "Live Chat"),
    ("/api/v1/notifications", "Notifications"),
    ("/api/v1/users", "Users"),
]

ALL_TAGS = [t for _, t in PATTERN_TAGS]


def assign_group_tag(path: str) -> str | None:
    for prefix, tag in PATTERN_TAGS:
        if path.startswith(prefix):
            return tag
    return None


def group_tags(result: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Overwrite each operation's ``tags`` with its feature group."""

    for path, path_item in result.get("paths", {}).items():
        tag = assign_group_tag(path)
        if not tag:
            continue
        for method, operation in path_item.items():
            if method.lower() in _HTTP_METHODS and isinstance(operation, dict):
                operation["tags"] = [tag]

    tag_list = result.setdefault("tags", [])
    existing = {t.get("name") for t in tag_list}
    tag_list.extend({"name": tag} for tag in ALL_TAGS if tag not in existing)
    return result
